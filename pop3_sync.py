# system imports:
import logging

# email_proto imports:
from event_handling import SyncClient
import pop3_proto as proto

logger = logging.getLogger ( __name__ )


class Client ( SyncClient ):
	protocls = proto.Client

	@property
	def state ( self ) -> proto.SessionState:
		assert isinstance ( self.proto, proto.Client )
		return self.proto.state

	def greeting ( self, probe: bool = False ) -> proto.GreetingResponse:
		return self._request ( proto.GreetingRequest ( probe ) )

	def cmd ( self, line: str ) -> proto.SuccessResponse:
		return self._request ( proto.CmdRequest ( line ) )

	def capa ( self ) -> proto.CapaResponse:
		return self._request ( proto.CapaRequest() )

	def starttls ( self ) -> proto.SuccessResponse:
		return self._request ( proto.StartTlsRequest() )

	def auth ( self, uid: str, pwd: str, *, plain_legacy: bool = False ) -> proto.SuccessResponse:
		'''
		Discover the server's capabilities and authenticate with the first
		supported mechanism: CRAM-MD5 if advertised via SASL, else PLAIN.
		Raises AuthUnsupported if neither is available.
		'''
		capa = self.capa()
		return self._request ( proto.auth_request ( capa, uid, pwd, plain_legacy = plain_legacy ) )

	def auth_cram_md5 ( self, uid: str, pwd: str ) -> proto.SuccessResponse:
		return self._request ( proto.AuthCramMd5Request ( uid, pwd ) )

	def auth_plain ( self, uid: str, pwd: str, *, legacy: bool = False ) -> proto.SuccessResponse:
		return self._request ( proto.AuthPlainRequest ( uid, pwd, legacy ) )

	def apop ( self, uid: str, pwd: str, challenge: str ) -> proto.SuccessResponse:
		return self._request ( proto.ApopRequest ( uid, pwd, challenge ) )

	def user_pass ( self, uid: str, pwd: str ) -> proto.SuccessResponse:
		return self._request ( proto.UserPassRequest ( uid, pwd ) )

	def stat ( self ) -> proto.StatResponse:
		return self._request ( proto.StatRequest() )

	def list ( self, msg: int ) -> proto.ListResponse:
		return self._request ( proto.ListRequest ( msg ) )

	def list_all ( self ) -> proto.ListAllResponse:
		return self._request ( proto.ListAllRequest() )

	def uidl ( self, msg: int ) -> proto.UidlResponse:
		return self._request ( proto.UidlRequest ( msg ) )

	def uidl_all ( self ) -> proto.UidlAllResponse:
		return self._request ( proto.UidlAllRequest() )

	def retr ( self, msg: int ) -> proto.RetrResponse:
		return self._request ( proto.RetrRequest ( msg ) )

	def top ( self, msg: int, lines: int ) -> proto.TopResponse:
		return self._request ( proto.TopRequest ( msg, lines ) )

	def dele ( self, msg: int ) -> proto.SuccessResponse:
		return self._request ( proto.DeleRequest ( msg ) )

	def rset ( self ) -> proto.SuccessResponse:
		return self._request ( proto.RsetRequest() )

	def noop ( self ) -> proto.SuccessResponse:
		return self._request ( proto.NoOpRequest() )

	def quit ( self ) -> proto.SuccessResponse:
		return self._request ( proto.QuitRequest() )

	def on_StartTlsBeginEvent ( self, event: proto.StartTlsBeginEvent ) -> None:
		self.transport.starttls_client ( self.server_hostname )

	def on_CloseEvent ( self, event: proto.CloseEvent ) -> None:
		self.transport.close()

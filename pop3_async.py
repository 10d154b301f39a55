# system imports:
import logging

# email_proto imports:
from event_handling import AsyncClient
import pop3_proto as proto

logger = logging.getLogger ( __name__ )


class Client ( AsyncClient ):
	protocls = proto.Client

	@property
	def state ( self ) -> proto.SessionState:
		assert isinstance ( self.proto, proto.Client )
		return self.proto.state

	async def greeting ( self, probe: bool = False ) -> proto.GreetingResponse:
		return await self._request ( proto.GreetingRequest ( probe ) )

	async def cmd ( self, line: str ) -> proto.SuccessResponse:
		return await self._request ( proto.CmdRequest ( line ) )

	async def capa ( self ) -> proto.CapaResponse:
		#log = logger.getChild ( 'Client.capa' )
		return await self._request ( proto.CapaRequest() )

	async def starttls ( self ) -> proto.SuccessResponse:
		return await self._request ( proto.StartTlsRequest() )

	async def auth ( self, uid: str, pwd: str, *, plain_legacy: bool = False ) -> proto.SuccessResponse:
		capa = await self.capa()
		return await self._request ( proto.auth_request ( capa, uid, pwd, plain_legacy = plain_legacy ) )

	async def auth_cram_md5 ( self, uid: str, pwd: str ) -> proto.SuccessResponse:
		return await self._request ( proto.AuthCramMd5Request ( uid, pwd ) )

	async def auth_plain ( self, uid: str, pwd: str, *, legacy: bool = False ) -> proto.SuccessResponse:
		return await self._request ( proto.AuthPlainRequest ( uid, pwd, legacy ) )

	async def apop ( self, uid: str, pwd: str, challenge: str ) -> proto.SuccessResponse:
		return await self._request ( proto.ApopRequest ( uid, pwd, challenge ) )

	async def user_pass ( self, uid: str, pwd: str ) -> proto.SuccessResponse:
		return await self._request ( proto.UserPassRequest ( uid, pwd ) )

	async def stat ( self ) -> proto.StatResponse:
		return await self._request ( proto.StatRequest() )

	async def list ( self, msg: int ) -> proto.ListResponse:
		return await self._request ( proto.ListRequest ( msg ) )

	async def list_all ( self ) -> proto.ListAllResponse:
		return await self._request ( proto.ListAllRequest() )

	async def uidl ( self, msg: int ) -> proto.UidlResponse:
		return await self._request ( proto.UidlRequest ( msg ) )

	async def uidl_all ( self ) -> proto.UidlAllResponse:
		return await self._request ( proto.UidlAllRequest() )

	async def retr ( self, msg: int ) -> proto.RetrResponse:
		return await self._request ( proto.RetrRequest ( msg ) )

	async def top ( self, msg: int, lines: int ) -> proto.TopResponse:
		return await self._request ( proto.TopRequest ( msg, lines ) )

	async def dele ( self, msg: int ) -> proto.SuccessResponse:
		return await self._request ( proto.DeleRequest ( msg ) )

	async def rset ( self ) -> proto.SuccessResponse:
		return await self._request ( proto.RsetRequest() )

	async def noop ( self ) -> proto.SuccessResponse:
		return await self._request ( proto.NoOpRequest() )

	async def quit ( self ) -> proto.SuccessResponse:
		return await self._request ( proto.QuitRequest() )

	async def on_StartTlsBeginEvent ( self, event: proto.StartTlsBeginEvent ) -> None:
		await self.transport.starttls_client ( self.server_hostname )

	async def on_CloseEvent ( self, event: proto.CloseEvent ) -> None:
		await self.transport.close()

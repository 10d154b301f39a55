#region PROLOGUE --------------------------------------------------------------
from __future__ import annotations

# python imports:
from abc import abstractmethod
import base64
import enum
import hashlib
import hmac
import logging
import re
from typing import (
	Callable, Dict, Iterator, List, NamedTuple, NoReturn, Optional as Opt, Tuple,
	Type, Union,
)

# email_proto imports:
from base_proto import (
	BaseResponse, ResponseType, BaseRequest, RequestT, Event, NeedDataEvent,
	Closed, RequestProtocolGenerator, ClientProtocol, ClientUtil,
	ProtocolError, MalformedResponse, AuthUnsupported, StateError,
)
from util import bytes_types, BYTES, b2s, s2b, strip_eol, b64_encode_str, not_implemented

logger = logging.getLogger ( __name__ )

POP3_PORT = 110
POP3S_PORT = 995 # RFC8314#7.3

_r_eol = re.compile ( r'[\r\n]' )


#endregion
#region RESPONSES -------------------------------------------------------------

class Response ( BaseResponse ):
	def __init__ ( self, ok: bool, message: str ) -> None:
		self.ok = ok
		self.message = message
		super().__init__ ( message )

	@staticmethod
	def parse ( line: BYTES ) -> Union[SuccessResponse,ErrorResponse]:
		#log = logger.getChild ( 'Response.parse' )
		assert isinstance ( line, bytes_types ), f'invalid {line=}'
		text = b2s ( strip_eol ( line ), 'utf-8', 'replace' )
		if not text:
			raise MalformedResponse ( 'empty status line from server' )
		_, *extra = text.split ( ' ', 1 )
		# '+OK' and the bare '+' of an auth continuation are both success
		if text[0] == '+':
			return SuccessResponse ( extra[0].rstrip() if extra else '' )
		return ErrorResponse ( extra[0].rstrip() if extra else text )

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}({self.ok!r}, {self.message!r})'


class SuccessResponse ( Response ):
	def __init__ ( self, message: str ) -> None:
		return super().__init__ ( True, message )
	def is_success ( self ) -> bool:
		return True


class ErrorResponse ( Response, ProtocolError ):
	def __init__ ( self, message: str ) -> None:
		return super().__init__ ( False, message )
	def is_success ( self ) -> bool:
		return False


class GreetingResponse ( SuccessResponse ):
	apop_challenge: Opt[str]

	def __init__ ( self, message: str ) -> None:
		m = re.search ( r'(<.*>)', message )
		self.apop_challenge = m.group ( 1 ) if m else None
		super().__init__ ( message )


class MultiResponse ( SuccessResponse ):
	def __init__ ( self, message: str, *lines: str ) -> None:
		self.lines = lines
		super().__init__ ( message )

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}({self.ok!r}, {self.message!r}, {", ".join(map(repr,self.lines))})'


class CapaResponse ( MultiResponse ):
	capa: Dict[str,str]
	sasl: List[str] # advertised SASL mechanisms, in the order the server listed them
	plain: bool # server advertised a bare PLAIN capability

	def __init__ ( self, message: str, *lines: str ) -> None:
		super().__init__ ( message, *lines )
		self.capa = {}
		self.sasl = []
		self.plain = False
		for line in lines:
			capa_name, *capa_params = line.split ( ' ', 1 )
			self.capa[capa_name] = capa_params[0].rstrip() if capa_params else ''
			if line.startswith ( 'SASL' ):
				self.sasl.extend ( line.split()[1:] )
			elif line == 'PLAIN':
				self.plain = True

	def __repr__ ( self ) -> str:
		cls = type ( self )
		capa_ = ', '.join ( [
			f'{k!r}: {v!r}' for k, v in sorted ( self.capa.items() )
		] )
		return f'{cls.__module__}.{cls.__name__}({self.ok!r}, {self.message!r}, capa={{{capa_}}})'


def _ints ( text: str, count: int ) -> List[int]:
	fields = text.split()
	try:
		return [ int ( fields[i] ) for i in range ( count ) ]
	except ( IndexError, ValueError ) as e:
		raise MalformedResponse ( f'invalid server response {text!r}' ) from e


class StatResponse ( SuccessResponse ):
	def __init__ ( self, message: str ) -> None:
		self.count, self.octets = _ints ( message, 2 )
		super().__init__ ( message )


class ListMessage ( NamedTuple ):
	id: int
	octets: int


class ListResponse ( SuccessResponse ):
	def __init__ ( self, message: str ) -> None:
		self.message_info = ListMessage ( *_ints ( message, 2 ) )
		super().__init__ ( message )

	@property
	def octets ( self ) -> int:
		return self.message_info.octets


class ListAllResponse ( MultiResponse ):
	def __init__ ( self, message: str, *lines: str ) -> None:
		self.messages = [ ListMessage ( *_ints ( line, 2 ) ) for line in lines ]
		super().__init__ ( message, *lines )

	@property
	def ids ( self ) -> Tuple[int,...]:
		return tuple ( msg.id for msg in self.messages )

	@property
	def sizes ( self ) -> Tuple[int,...]:
		return tuple ( msg.octets for msg in self.messages )


class UidlMessage ( NamedTuple ):
	id: int
	uid: str


def _uidl_message ( text: str ) -> UidlMessage:
	fields = text.split()
	try:
		return UidlMessage ( int ( fields[0] ), fields[1] )
	except ( IndexError, ValueError ) as e:
		raise MalformedResponse ( f'invalid server response {text!r}' ) from e


class UidlResponse ( SuccessResponse ):
	def __init__ ( self, message: str ) -> None:
		self.message_info = _uidl_message ( message )
		super().__init__ ( message )


class UidlAllResponse ( MultiResponse ):
	def __init__ ( self, message: str, *lines: str ) -> None:
		self.messages = [ _uidl_message ( line ) for line in lines ]
		super().__init__ ( message, *lines )


class RetrResponse ( MultiResponse ):
	@property
	def text ( self ) -> str:
		''' message content with lines separated by LF whatever the server sent '''
		return '\n'.join ( self.lines )


class TopResponse ( RetrResponse ):
	pass


client_util = ClientUtil ( Response.parse )

#endregion
#region EVENTS ----------------------------------------------------------------

class StartTlsBeginEvent ( Event ):
	pass


class CloseEvent ( Event ):
	''' the server acknowledged QUIT, the transport should be closed '''


#endregion
#region AUTH ------------------------------------------------------------------

class SessionState ( enum.Enum ):
	UNAUTHENTICATED = 'unauthenticated'
	AUTHORIZED = 'authorized'
	CLOSED = 'closed'


class AuthMechanism ( enum.Enum ):
	CRAM_MD5 = 'CRAM-MD5'
	PLAIN = 'PLAIN'


def select_auth_mechanism ( capa: CapaResponse ) -> Opt[AuthMechanism]:
	for mechanism in capa.sasl:
		if mechanism == AuthMechanism.CRAM_MD5.value:
			return AuthMechanism.CRAM_MD5
	if capa.plain:
		return AuthMechanism.PLAIN
	return None


def apop_hash ( challenge: str, pwd: str ) -> str:
	return hashlib.md5 ( s2b ( f'{challenge}{pwd}', 'utf-8' ) ).hexdigest()


def cram_md5_response ( uid: str, pwd: str, challenge: bytes ) -> str:
	# RFC2195#2
	digest = hmac.new ( s2b ( pwd, 'utf-8' ), challenge, hashlib.md5 ).hexdigest()
	return b64_encode_str ( f'{uid} {digest}', 'utf-8' )


def plain_credentials ( uid: str, pwd: str, legacy: bool = False ) -> str:
	if legacy:
		# password only, for servers that accept the old framing
		return b64_encode_str ( pwd, 'utf-8' )
	return b64_encode_str ( f'{uid}\0{uid}\0{pwd}', 'utf-8' ) # RFC4616#2


#endregion
#region REQUESTS --------------------------------------------------------------

class Request ( RequestT[ResponseType] ):
	def _client_protocol ( self, client: ClientProtocol ) -> RequestProtocolGenerator:
		assert isinstance ( client, Client )
		yield from self.client_protocol ( client )

	@abstractmethod
	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		not_implemented ( self, 'client_protocol' )


class _TransactionRequest ( Request[ResponseType] ):
	auth_required = True


class GreetingRequest ( Request[GreetingResponse] ):
	responsecls = GreetingResponse

	def __init__ ( self, probe: bool = False ) -> None:
		self.probe = probe

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		#log = logger.getChild ( 'GreetingRequest.client_protocol' )
		if self.probe: # a bare CRLF to elicit the greeting
			yield from client_util.send ( '\r\n' )
		event = NeedDataEvent()
		yield from client_util.recv_ok ( event )
		assert isinstance ( event.response, Response )
		client.greeting = GreetingResponse ( event.response.message )
		raise client.greeting


class CmdRequest ( Request[SuccessResponse] ):
	responsecls = SuccessResponse

	def __init__ ( self, line: str ) -> None:
		assert isinstance ( line, str ) and line and not _r_eol.search ( line ), f'invalid {line=}'
		self.line = line

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		yield from client_util.send_recv_done ( f'{self.line}\r\n' )


class CapaRequest ( Request[CapaResponse] ): # RFC2449
	responsecls = CapaResponse

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( 'CAPA\r\n', event ) # +OK Capability list follows
		assert isinstance ( event.response, Response )
		lines = yield from client_util.recv_lines ( client.encoding, client.encoding_errors )
		raise CapaResponse ( event.response.message, *lines )


class StartTlsRequest ( Request[SuccessResponse] ): # RFC2595 Using TLS with IMAP, POP3 and ACAP
	responsecls = SuccessResponse
	tls_excluded = True
	auth_excluded = True

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		#log = logger.getChild ( 'StartTlsRequest.client_protocol' )
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( 'STLS\r\n', event )
		yield from StartTlsBeginEvent().go()
		client.tls = True
		assert isinstance ( event.response, SuccessResponse )
		raise event.response


class _Auth ( Request[SuccessResponse] ):
	responsecls = SuccessResponse
	auth_excluded = True

	def __init__ ( self, uid: str, pwd: str ) -> None:
		self.uid = str ( uid )
		self.pwd = str ( pwd )
		assert len ( self.uid ) > 0 and not _r_eol.search ( self.uid ), f'invalid {self.uid=}'
		assert not _r_eol.search ( self.pwd ), 'invalid pwd'

	def _authorized ( self, client: Client, event: NeedDataEvent ) -> NoReturn:
		assert isinstance ( event.response, SuccessResponse )
		client.authorized = True
		raise event.response

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}(uid={self.uid!r})'


_auth_mechanisms: Dict[AuthMechanism,Type[_Auth]] = {}

def auth_mechanism ( mechanism: AuthMechanism ) -> Callable[[Type[_Auth]],Type[_Auth]]:
	def registrar ( cls: Type[_Auth] ) -> Type[_Auth]:
		assert mechanism not in _auth_mechanisms, f'duplicate auth {mechanism=}'
		_auth_mechanisms[mechanism] = cls
		return cls
	return registrar


@auth_mechanism ( AuthMechanism.CRAM_MD5 )
class AuthCramMd5Request ( _Auth ): # RFC5034 + RFC2195

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		log = logger.getChild ( 'AuthCramMd5Request.client_protocol' )
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( 'AUTH CRAM-MD5\r\n', event ) # + <base64 challenge>
		assert isinstance ( event.response, Response )
		try:
			challenge = base64.b64decode ( s2b ( event.response.message ), validate = True )
		except ValueError as e: # binascii.Error, UnicodeEncodeError
			log.debug ( f'undecodable challenge {event.response.message!r}: {e!r}' )
			# RFC5034#4 the client may cancel the exchange with a single '*'
			yield from client_util.send ( '*\r\n' )
			yield from NeedDataEvent().go()
			raise MalformedResponse ( f'invalid CRAM-MD5 challenge {event.response.message!r}' ) from e
		response = cram_md5_response ( self.uid, self.pwd, challenge )
		yield from client_util.send_recv_ok ( f'{response}\r\n', event, secret = True )
		self._authorized ( client, event )


@auth_mechanism ( AuthMechanism.PLAIN )
class AuthPlainRequest ( _Auth ): # RFC5034 initial-response form

	def __init__ ( self, uid: str, pwd: str, legacy: bool = False ) -> None:
		super().__init__ ( uid, pwd )
		self.legacy = legacy

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		#log = logger.getChild ( 'AuthPlainRequest.client_protocol' )
		authtext = plain_credentials ( self.uid, self.pwd, self.legacy )
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( f'AUTH PLAIN {authtext}\r\n', event, secret = True )
		self._authorized ( client, event )


class ApopRequest ( _Auth ):

	def __init__ ( self, uid: str, pwd: str, challenge: str ) -> None:
		assert ' ' not in uid, f'invalid {uid=}'
		assert challenge[0:1] == '<' and challenge[-1:] == '>', f'invalid {challenge=}'
		super().__init__ ( uid, pwd )
		self.challenge = challenge
		self.digest = apop_hash ( challenge, pwd )

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( f'APOP {self.uid} {self.digest}\r\n', event )
		self._authorized ( client, event )


class UserPassRequest ( _Auth ):

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( f'USER {self.uid}\r\n', event )
		yield from client_util.send_recv_ok ( f'PASS {self.pwd}\r\n', event, secret = True )
		self._authorized ( client, event )


def auth_request ( capa: CapaResponse, uid: str, pwd: str, *, plain_legacy: bool = False ) -> _Auth:
	log = logger.getChild ( 'auth_request' )
	mechanism = select_auth_mechanism ( capa )
	log.debug ( f'{mechanism=} from {capa.sasl=} {capa.plain=}' )
	if mechanism is None:
		raise AuthUnsupported ( 'No supported auth methods found' )
	requestcls = _auth_mechanisms[mechanism]
	if issubclass ( requestcls, AuthPlainRequest ):
		return requestcls ( uid, pwd, plain_legacy )
	return requestcls ( uid, pwd )


class StatRequest ( _TransactionRequest[StatResponse] ):
	responsecls = StatResponse

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( 'STAT\r\n', event )
		assert isinstance ( event.response, Response )
		raise StatResponse ( event.response.message )


def _msg ( msg: int ) -> int:
	assert isinstance ( msg, int ) and msg > 0, f'invalid {msg=}'
	return msg


class ListRequest ( _TransactionRequest[ListResponse] ):
	responsecls = ListResponse

	def __init__ ( self, msg: int ) -> None:
		self.msg = _msg ( msg )

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( f'LIST {self.msg}\r\n', event )
		assert isinstance ( event.response, Response )
		raise ListResponse ( event.response.message )


class ListAllRequest ( _TransactionRequest[ListAllResponse] ):
	responsecls = ListAllResponse

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( 'LIST\r\n', event )
		assert isinstance ( event.response, Response )
		lines = yield from client_util.recv_lines ( client.encoding, client.encoding_errors )
		raise ListAllResponse ( event.response.message, *lines )


class UidlRequest ( _TransactionRequest[UidlResponse] ):
	responsecls = UidlResponse

	def __init__ ( self, msg: int ) -> None:
		self.msg = _msg ( msg )

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( f'UIDL {self.msg}\r\n', event )
		assert isinstance ( event.response, Response )
		raise UidlResponse ( event.response.message )


class UidlAllRequest ( _TransactionRequest[UidlAllResponse] ):
	responsecls = UidlAllResponse

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( 'UIDL\r\n', event )
		assert isinstance ( event.response, Response )
		lines = yield from client_util.recv_lines ( client.encoding, client.encoding_errors )
		raise UidlAllResponse ( event.response.message, *lines )


class RetrRequest ( _TransactionRequest[RetrResponse] ):
	responsecls = RetrResponse

	def __init__ ( self, msg: int ) -> None:
		self.msg = _msg ( msg )

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( f'RETR {self.msg}\r\n', event )
		assert isinstance ( event.response, Response )
		lines = yield from client_util.recv_lines ( client.encoding, client.encoding_errors )
		raise RetrResponse ( event.response.message, *lines )


class TopRequest ( _TransactionRequest[TopResponse] ):
	responsecls = TopResponse

	def __init__ ( self, msg: int, lines: int ) -> None:
		assert isinstance ( lines, int ) and lines >= 0, f'invalid {lines=}'
		self.msg = _msg ( msg )
		self.lines = lines

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( f'TOP {self.msg} {self.lines}\r\n', event )
		assert isinstance ( event.response, Response )
		lines = yield from client_util.recv_lines ( client.encoding, client.encoding_errors )
		raise TopResponse ( event.response.message, *lines )


class DeleRequest ( _TransactionRequest[SuccessResponse] ):
	responsecls = SuccessResponse

	def __init__ ( self, msg: int ) -> None:
		self.msg = _msg ( msg )

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		yield from client_util.send_recv_done ( f'DELE {self.msg}\r\n' )


class RsetRequest ( _TransactionRequest[SuccessResponse] ):
	responsecls = SuccessResponse

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		yield from client_util.send_recv_done ( 'RSET\r\n' )


class NoOpRequest ( _TransactionRequest[SuccessResponse] ):
	responsecls = SuccessResponse

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		yield from client_util.send_recv_done ( 'NOOP\r\n' )


class QuitRequest ( Request[SuccessResponse] ):
	responsecls = SuccessResponse

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		#log = logger.getChild ( 'QuitRequest.client_protocol' )
		event = NeedDataEvent()
		yield from client_util.send_recv_ok ( 'QUIT\r\n', event )
		yield from CloseEvent().go()
		client.closed = True
		assert isinstance ( event.response, SuccessResponse )
		raise event.response

#endregion
#region CLIENT ----------------------------------------------------------------

class Client ( ClientProtocol ):
	_MAXLINE = 1 << 20 # message bodies may carry very long lines
	encoding = 'utf-8' # multi-line payloads
	encoding_errors = 'surrogateescape'
	authorized: bool = False
	greeting: Opt[GreetingResponse] = None

	@property
	def state ( self ) -> SessionState:
		if self.closed:
			return SessionState.CLOSED
		if self.authorized:
			return SessionState.AUTHORIZED
		return SessionState.UNAUTHENTICATED

	def send ( self, request: BaseRequest ) -> Iterator[Event]:
		if not self.closed:
			if request.auth_required and not self.authorized:
				raise StateError ( f'{request!r} requires an authorized session' )
			if request.auth_excluded and self.authorized:
				raise StateError ( f'{request!r} not permitted once authorized' )
			if request.tls_excluded and self.tls:
				raise StateError ( f'{request!r} not permitted when TLS is active' )
		yield from super().send ( request )

#endregion

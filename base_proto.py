from __future__ import annotations

# python imports:
from abc import ABCMeta, abstractmethod
import logging
from types import TracebackType
from typing import (
	Callable, Generator, Generic, Iterator, List, Optional as Opt,
	Sequence as Seq, Tuple, Type, TypeVar, Union,
)

# email_proto imports:
from util import bytes_types, BYTES, b2s, s2b, strip_eol, not_implemented

logger = logging.getLogger ( __name__ )

EXC_INFO = Opt[Union[
	Tuple[Type[BaseException],BaseException,TracebackType],
	Tuple[None,None,None],
]]


class Event ( Exception ):
	exc_info: EXC_INFO = None

	def go ( self ) -> Iterator[Event]:
		yield self

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}()'


#region ERRORS

class TransportError ( Exception ):
	pass


class Closed ( TransportError ):
	def __init__ ( self, reason: str = '' ) -> None:
		super().__init__ ( reason or '(none given)' )


class ProtocolError ( Exception ):
	''' the server answered with a failure status '''


class MalformedResponse ( Exception ):
	pass


class AuthUnsupported ( Exception ):
	pass


class StateError ( Exception ):
	''' the command is not valid in the session's current state '''

#endregion ERRORS


ResponseType = TypeVar ( 'ResponseType', bound = 'BaseResponse' )
class BaseResponse ( Exception, metaclass = ABCMeta ):
	@abstractmethod
	def is_success ( self ) -> bool:
		not_implemented ( self, 'is_success' )


RequestProtocolGenerator = Generator[Event,None,None]


class BaseRequest ( metaclass = ABCMeta ):
	# this class is the basis of all client command handling
	# 1) client uses __init__() to construct request
	# 2) _client_protocol() implements the client-side state machine
	# 3) the state machine must raise its response (or set base_response) before exiting
	tls_excluded: bool = False
	auth_required: bool = False
	auth_excluded: bool = False
	base_response: Opt[BaseResponse] = None

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}()'

	@abstractmethod
	def _client_protocol ( self, client: ClientProtocol ) -> RequestProtocolGenerator:
		not_implemented ( self, '_client_protocol' )


class RequestT ( BaseRequest, Generic[ResponseType] ):
	responsecls: Type[ResponseType]

	@property
	def response ( self ) -> ResponseType:
		assert isinstance ( self.base_response, self.responsecls )
		return self.base_response
RequestType = RequestT[ResponseType]


class NeedDataEvent ( Event ):
	data: Opt[bytes] = None
	response: Opt[BaseResponse] = None

	def reset ( self ) -> NeedDataEvent:
		self.data = None
		self.response = None
		return self

	def go ( self ) -> Iterator[Event]:
		self.reset()
		yield from super().go()


class SendDataEvent ( Event ):

	def __init__ ( self, *chunks: bytes, secret: bool = False ) -> None:
		self.chunks: Seq[bytes] = chunks
		self.secret = secret # don't log the contents

	def __repr__ ( self ) -> str:
		cls = type ( self )
		chunks = '(********)' if self.secret else repr ( self.chunks )
		return f'{cls.__module__}.{cls.__name__}(chunks={chunks})'


class Protocol ( metaclass = ABCMeta ):
	_buf: bytes = b''
	request: Opt[BaseRequest] = None
	request_protocol: Opt[Generator[Event,None,None]] = None
	need_data: Opt[NeedDataEvent] = None
	tls: bool # whether or not the connection is currently encrypted
	closed: bool = False
	_MAXLINE: int

	def __init__ ( self, tls: bool ) -> None:
		self.tls = tls

	def receive ( self, data: bytes ) -> Iterator[Event]:
		#log = logger.getChild ( 'Protocol.receive' )
		assert isinstance ( data, bytes_types ), f'invalid {data=}'
		if not data: # EOF indicator
			if self._buf:
				buf, self._buf = self._buf, b''
				yield from self._receive_line ( buf )
				return
			raise Closed ( 'EOF' )
		self._buf += data
		start = 0
		end = 0
		try:
			while ( end := ( self._buf.find ( b'\n', start ) + 1 ) ):
				line = memoryview ( self._buf )[start:end]
				start = end
				yield from self._receive_line ( line )
		finally:
			if start:
				self._buf = self._buf[start:]
		if len ( self._buf ) >= self._MAXLINE:
			# the reply can't be resynchronized, so the connection is done for
			self._buf = b''
			self.request = None
			self.request_protocol = None
			self.need_data = None
			self.closed = True
			raise Closed ( 'maximum line length exceeded' )

	@abstractmethod
	def _receive_line ( self, line: bytes ) -> Iterator[Event]:
		not_implemented ( self, '_receive_line' )

	def _run_protocol ( self ) -> Iterator[Event]:
		log = logger.getChild ( 'Protocol._run_protocol' )
		assert self.request is not None, f'invalid {self.request=}'
		assert self.request_protocol is not None, f'invalid {self.request_protocol=}'
		try:
			while True:
				event = next ( self.request_protocol )
				log.debug ( f'{event=}' )
				if isinstance ( event, NeedDataEvent ):
					if self.request.base_response is not None:
						log.warning ( f'INTERNAL ERROR - {self.request!r} pushed NeedDataEvent but has a response set - this can cause upstack deadlock ({self.request.base_response!r})' )
						self.request.base_response = None
					self.need_data = event.reset()
					return
				else:
					yield event
					if event.exc_info:
						self.request_protocol.throw ( *event.exc_info )
		except Closed:
			self.request = None
			self.request_protocol = None
			self.closed = True
			raise
		except BaseResponse as response:
			request, self.request = self.request, None
			self.request_protocol = None
			if not response.is_success():
				raise
			assert isinstance ( request, BaseRequest )
			request.base_response = response
		except ( MalformedResponse, StateError ):
			# the reply was consumed in full, so the session stays usable
			self.request = None
			self.request_protocol = None
			raise
		except StopIteration:
			# client protocol *must* raise its response
			# *or* set it's base_response attribute before exiting
			# if not, the event_handling client's _request() will get stuck waiting for data that never arrives
			request, self.request = self.request, None
			self.request_protocol = None
			if request is None or not request.base_response:
				log.warning (
					f'INTERNAL ERROR:'
					f' {type(request).__module__}.{type(request).__name__}'
					f'._client_protocol() exit w/o response - this can cause upstack deadlock'
				)
				self.closed = True
				raise Closed ( 'INTERNAL ERROR - CLIENT PROTOCOLS MUST THROW THEIR RESPONSE' )
		except Exception as e:
			self.request = None
			self.request_protocol = None
			log.exception ( 'internal protocol error:' )
			self.closed = True
			raise Closed ( repr ( e ) ) from e


class ClientProtocol ( Protocol ):
	def send ( self, request: BaseRequest ) -> Iterator[Event]:
		#log = logger.getChild ( 'ClientProtocol.send' )
		if self.closed:
			raise Closed ( f'cannot send {request!r}: connection is closed' )
		assert self.request is None, f'trying to send {request=} but not finished processing {self.request=}'
		self.request = request
		self.request_protocol = request._client_protocol ( self )
		yield from self._run_protocol()

	def _receive_line ( self, line: BYTES ) -> Iterator[Event]:
		assert self.need_data, f'not expecting data at this time ({bytes(line)!r})'
		self.need_data.data = line
		self.need_data = None
		yield from self._run_protocol()

#region client protocol helpers

class ClientUtil:
	def __init__ ( self,
		parser: Callable[[BYTES],ResponseType],
	) -> None:
		self.parser = parser

	def send ( self, line: str, *, secret: bool = False ) -> Iterator[Event]:
		assert line.endswith ( '\r\n' ), f'invalid {line=}'
		yield from ( event := SendDataEvent ( s2b ( line, 'utf-8' ), secret = secret ) ).go()

	def recv_ok ( self, event: Opt[NeedDataEvent] = None ) -> Iterator[Event]:
		if event is None:
			event = NeedDataEvent()
		yield from event.reset().go()
		event.response = response = self.parser ( event.data or b'' )
		if not response.is_success():
			raise response

	def recv_done ( self ) -> Iterator[Event]:
		yield from ( event := NeedDataEvent() ).go()
		response = self.parser ( event.data or b'' )
		raise response

	def recv_lines ( self,
		encoding: str = 'us-ascii',
		errors: str = 'strict',
	) -> Generator[Event,None,List[str]]:
		# reads a dot-terminated block, the terminator itself is not returned
		# exactly one leading '.' is removed from every line that starts with one
		# an undecodable line is reported only after the whole block is consumed
		lines: List[str] = []
		undecodable: Opt[UnicodeDecodeError] = None
		event = NeedDataEvent()
		while True:
			yield from event.go()
			raw = strip_eol ( event.data or b'' )
			if raw == b'.':
				if undecodable is not None:
					raise MalformedResponse ( f'undecodable line in multi-line response: {undecodable!r}' ) from undecodable
				return lines
			if raw[:1] == b'.':
				raw = raw[1:]
			try:
				lines.append ( b2s ( raw, encoding, errors ) )
			except UnicodeDecodeError as e:
				undecodable = undecodable or e

	def send_recv_ok ( self, line: str, event: Opt[NeedDataEvent] = None, *, secret: bool = False ) -> Iterator[Event]:
		yield from self.send ( line, secret = secret )
		yield from self.recv_ok ( event )

	def send_recv_done ( self, line: str, *, secret: bool = False ) -> Iterator[Event]:
		yield from self.send ( line, secret = secret )
		yield from self.recv_done()

#endregion client protocol helpers

# python imports:
import contextlib
import logging
from pathlib import Path
import sys
from typing import Iterator, List
import unittest

if __name__=='__main__': # pragma: no cover
	sys.path.append ( str ( Path ( __file__ ).parent.parent.absolute() ) )

# email_proto imports:
import base_proto
from util import BYTES

logger = logging.getLogger ( __name__ )

@contextlib.contextmanager
def quiet_logging ( quiet: bool = True ) -> Iterator[None]:
	try:
		if quiet:
			logging.disable ( logging.CRITICAL )
		yield None
	finally:
		if quiet:
			logging.disable ( logging.NOTSET )


class Ok ( base_proto.BaseResponse ):
	def __init__ ( self, line: BYTES ) -> None:
		self.line = bytes ( line )
	def is_success ( self ) -> bool:
		return self.line[:1] == b'+'


class LinesResponse ( base_proto.BaseResponse ):
	def __init__ ( self, lines: List[str] ) -> None:
		self.lines = lines
	def is_success ( self ) -> bool:
		return True


util = base_proto.ClientUtil ( Ok )


class LinesRequest ( base_proto.RequestT[LinesResponse] ):
	responsecls = LinesResponse
	def _client_protocol ( self, client: base_proto.ClientProtocol ) -> base_proto.RequestProtocolGenerator:
		yield from util.send_recv_ok ( 'LINES\r\n' )
		lines = yield from util.recv_lines()
		raise LinesResponse ( lines )


class DummyClient ( base_proto.ClientProtocol ):
	_MAXLINE = 1024


def read_lines ( *wire: bytes ) -> List[str]:
	cp = DummyClient ( False )
	request = LinesRequest()
	list ( cp.send ( request ) )
	list ( cp.receive ( b'+OK\r\n' + b''.join ( wire ) ) )
	return request.response.lines


class Tests ( unittest.TestCase ):
	def test_misc ( self ) -> None:
		test = self

		class BadResponse ( base_proto.BaseResponse ):
			def is_success ( self ) -> bool:
				return super().is_success()
		bad1 = BadResponse()
		with test.assertRaises ( NotImplementedError ):
			bad1.is_success()

		class BadRequest ( base_proto.BaseRequest ):
			def _client_protocol ( self, client: base_proto.ClientProtocol ) -> base_proto.RequestProtocolGenerator:
				return super()._client_protocol ( client )
		bad2 = BadRequest()
		with test.assertRaises ( NotImplementedError ):
			bad2._client_protocol ( DummyClient ( False ) )

		def IsSendData ( evt: base_proto.Event ) -> base_proto.SendDataEvent:
			assert isinstance ( evt, base_proto.SendDataEvent )
			return evt

		class TestProtocol ( base_proto.Protocol ):
			_MAXLINE = 42
			def _receive_line ( self, line: bytes ) -> Iterator[base_proto.Event]:
				if line:
					yield base_proto.SendDataEvent ( line )
		tp = TestProtocol ( False )
		evts = [ b''.join ( IsSendData ( evt ).chunks ) for evt in tp.receive ( b'foo\r' ) ]
		test.assertEqual ( evts, [] )
		evts = [ b''.join ( IsSendData ( evt ).chunks ) for evt in tp.receive ( b'\nba' ) ]
		test.assertEqual ( evts, [
			b'foo\r\n',
		] )
		evts = [ b''.join ( IsSendData ( evt ).chunks ) for evt in tp.receive ( b'ar\r\nbaz' ) ]
		test.assertEqual ( evts, [
			b'baar\r\n',
		] )
		evts = [ b''.join ( IsSendData ( evt ).chunks ) for evt in tp.receive ( b'' ) ]
		test.assertEqual ( evts, [
			b'baz',
		] )
		with test.assertRaises ( base_proto.Closed ):
			list ( tp.receive ( b'' ) )

		tp = TestProtocol ( False )
		with test.assertRaises ( base_proto.Closed ):
			list ( tp.receive ( b'X' * tp._MAXLINE ) )
		test.assertTrue ( tp.closed )
		test.assertEqual ( tp._buf, b'' )

		cp = DummyClient ( False )
		class InvalidRequest ( base_proto.BaseRequest ):
			def _client_protocol ( self, client: base_proto.ClientProtocol ) -> base_proto.RequestProtocolGenerator:
				yield from () # this will trigger internal protocol error below
		cp.request = ir = InvalidRequest()
		cp.request_protocol = ir._client_protocol ( cp )
		with test.assertRaises ( base_proto.Closed ):
			try:
				with quiet_logging():
					list ( cp._run_protocol() )
			except base_proto.Closed as e:
				test.assertEqual ( repr ( e ), "Closed('INTERNAL ERROR - CLIENT PROTOCOLS MUST THROW THEIR RESPONSE')" )
				raise

		class BadProtocol ( base_proto.Protocol ):
			def _receive_line ( self, line: bytes ) -> Iterator[base_proto.Event]:
				return super()._receive_line ( line )
		bp = BadProtocol ( False )
		with self.assertRaises ( NotImplementedError ):
			bp._receive_line ( b'' )

	def test_error_kinds ( self ) -> None:
		self.assertTrue ( issubclass ( base_proto.Closed, base_proto.TransportError ) )
		for cls in ( base_proto.ProtocolError, base_proto.MalformedResponse, base_proto.AuthUnsupported, base_proto.StateError ):
			self.assertFalse ( issubclass ( cls, base_proto.TransportError ), cls )
		self.assertEqual ( str ( base_proto.Closed() ), '(none given)' )

	def test_recv_lines ( self ) -> None:
		plain = [ 'From: a@example.com', '', 'hello world', '  indented' ]
		self.assertEqual (
			read_lines ( *[ f'{line}\r\n'.encode() for line in plain ], b'.\r\n' ),
			plain,
		)
		self.assertEqual ( read_lines ( b'.\r\n' ), [] )
		self.assertEqual ( read_lines ( b'.hello\r\n', b'..\r\n', b'...x\r\n', b'.\r\n' ), [
			'hello',
			'.',
			'..x',
		] )
		# bare LF line endings
		self.assertEqual ( read_lines ( b'one\n', b'two\n', b'.\n' ), [ 'one', 'two' ] )

	def test_overlong_line_closes ( self ) -> None:
		cp = DummyClient ( False )
		request = LinesRequest()
		list ( cp.send ( request ) )
		list ( cp.receive ( b'+OK\r\n' ) )
		with self.assertRaises ( base_proto.Closed ):
			for _ in range ( 4 ):
				list ( cp.receive ( b'A' * 512 ) )
		self.assertTrue ( cp.closed )
		self.assertIsNone ( cp.request )
		self.assertIsNone ( cp.need_data )
		with self.assertRaises ( base_proto.Closed ):
			list ( cp.send ( LinesRequest() ) )

	def test_undecodable_line ( self ) -> None:
		cp = DummyClient ( False )
		with self.assertRaises ( base_proto.MalformedResponse ):
			list ( cp.send ( LinesRequest() ) )
			list ( cp.receive ( b'+OK\r\nfran\xc3\xa7ais\r\nascii\r\n.\r\n' ) )
		self.assertFalse ( cp.closed )
		self.assertIsNone ( cp.request )
		# the block was consumed in full, so the next reply lines up
		request = LinesRequest()
		list ( cp.send ( request ) )
		list ( cp.receive ( b'+OK\r\nnext\r\n.\r\n' ) )
		self.assertEqual ( request.response.lines, [ 'next' ] )

	def test_internal_error_closes ( self ) -> None:
		class BrokenRequest ( base_proto.BaseRequest ):
			def _client_protocol ( self, client: base_proto.ClientProtocol ) -> base_proto.RequestProtocolGenerator:
				yield from util.send ( 'BROKEN\r\n' )
				raise KeyError ( 'oops' )
		cp = DummyClient ( False )
		with self.assertRaises ( base_proto.Closed ):
			with quiet_logging():
				list ( cp.send ( BrokenRequest() ) )
		self.assertIsNone ( cp.request )
		self.assertTrue ( cp.closed )

	def test_closed_rejects_send ( self ) -> None:
		cp = DummyClient ( False )
		cp.closed = True
		with self.assertRaises ( base_proto.Closed ):
			list ( cp.send ( LinesRequest() ) )

	def test_secret_repr ( self ) -> None:
		evt = base_proto.SendDataEvent ( b'PASS hunter2\r\n', secret = True )
		self.assertNotIn ( 'hunter2', repr ( evt ) )

if __name__ == '__main__':
	logging.basicConfig ( level = logging.DEBUG )
	unittest.main()

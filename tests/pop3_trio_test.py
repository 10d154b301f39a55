# system imports:
import logging
from pathlib import Path
import sys
import trio # pip install trio trio-typing
import trio.testing
import unittest

if __name__ == '__main__': # pragma: no cover
	sys.path.append ( str ( Path ( __file__ ).parent.parent.absolute() ) )

# mail_proto imports:
from _pop3testing import ScriptedServer, serve_trio_stream
import itrustme
import pop3_proto as proto
import pop3_trio

logger = logging.getLogger ( __name__ )

trust = itrustme.ServerOnly (
	server_hostname = 'milliways.local',
)


class Transport ( pop3_trio.Transport ):
	timeout = 5.0
	close_calls = 0

	async def close ( self ) -> None:
		self.close_calls += 1
		await super().close()


class Tests ( unittest.TestCase ):
	def test_client_server ( self ) -> None:
		test = self
		self.maxDiff = None

		server = ScriptedServer (
			b'+OK POP3 server ready <1896.697170952@dbc.mtview.ca.us>\r\n',
			b'+OK Capability list follows\r\nSTLS\r\nSASL CRAM-MD5\r\nUIDL\r\n.\r\n', # CAPA
			b'+OK Begin TLS negotiation\r\n', # STLS
			b'+OK Capability list follows\r\nSASL CRAM-MD5 PLAIN\r\nUIDL\r\n.\r\n', # CAPA
			b'+ PDE4OTYuNjk3MTcwOTUyQHBvc3RvZmZpY2UucmVzdG9uLm1jaS5uZXQ+\r\n', # AUTH CRAM-MD5
			b'+OK CRAM authentication successful\r\n',
			b'+OK 2 320\r\n', # STAT
			b'+OK 2 messages (320 octets)\r\n1 120\r\n2 200\r\n.\r\n', # LIST
			b'+OK 120 octets\r\nSubject: test\r\n\r\n..dotted\r\nbody\r\n.\r\n', # RETR 1
			b'-ERR no such message\r\n', # DELE 9
			b'+OK message 1 deleted\r\n', # DELE 1
			b'+OK dewey POP3 server signing off\r\n', # QUIT
		)

		async def _test() -> None:
			thing1, thing2 = trio.testing.memory_stream_pair()

			async def client_task ( stream: trio.abc.Stream ) -> None:
				#log = logger.getChild ( 'test_client_server.client_task' )
				xport = Transport ( stream )
				xport.ssl_context = trust.client_context()
				cli = pop3_trio.Client ( xport, False, 'milliways.local' )
				try:
					r1 = await cli.greeting()
					test.assertEqual (
						repr ( r1 ),
						"pop3_proto.GreetingResponse(True, 'POP3 server ready <1896.697170952@dbc.mtview.ca.us>')",
					)
					test.assertEqual ( r1.apop_challenge, '<1896.697170952@dbc.mtview.ca.us>' )

					test.assertEqual (
						repr ( await cli.capa() ),
						"pop3_proto.CapaResponse(True, 'Capability list follows', capa={'SASL': 'CRAM-MD5', 'STLS': '', 'UIDL': ''})",
					)
					test.assertEqual (
						repr ( await cli.starttls() ),
						"pop3_proto.SuccessResponse(True, 'Begin TLS negotiation')",
					)
					test.assertEqual (
						repr ( await cli.auth ( 'tim', 'tanstaaftanstaaf' ) ),
						"pop3_proto.SuccessResponse(True, 'CRAM authentication successful')",
					)
					test.assertEqual ( cli.state, proto.SessionState.AUTHORIZED )

					r2 = await cli.stat()
					test.assertEqual ( ( r2.count, r2.octets ), ( 2, 320 ) )

					r3 = await cli.list_all()
					test.assertEqual ( r3.ids, ( 1, 2 ) )
					test.assertEqual ( r3.sizes, ( 120, 200 ) )

					r4 = await cli.retr ( 1 )
					test.assertEqual ( r4.text, 'Subject: test\n\n.dotted\nbody' )

					with test.assertRaises ( proto.ErrorResponse ) as cm:
						await cli.dele ( 9 )
					test.assertEqual ( str ( cm.exception ), 'no such message' )

					test.assertEqual ( repr ( await cli.dele ( 1 ) ), "pop3_proto.SuccessResponse(True, 'message 1 deleted')" )
					test.assertEqual ( repr ( await cli.quit() ), "pop3_proto.SuccessResponse(True, 'dewey POP3 server signing off')" )
					test.assertEqual ( cli.state, proto.SessionState.CLOSED )
					test.assertEqual ( xport.close_calls, 1 )

					with test.assertRaises ( proto.Closed ):
						await cli.noop()
				finally:
					await cli.close()

			async with trio.open_nursery() as nursery:
				nursery.start_soon ( client_task, thing1 )
				nursery.start_soon ( serve_trio_stream, server, thing2, trust.server_context() )

		trio.run ( _test )

		self.assertEqual ( server.received, [
			b'CAPA',
			b'STLS',
			b'CAPA',
			b'AUTH CRAM-MD5',
			b'dGltIGI5MTNhNjAyYzdlZGE3YTQ5NWI0ZTZlNzMzNGQzODkw',
			b'STAT',
			b'LIST',
			b'RETR 1',
			b'DELE 9',
			b'DELE 1',
			b'QUIT',
		] )

	def test_server_hangs_up ( self ) -> None:
		test = self
		server = ScriptedServer ( b'+OK POP3 server ready\r\n' )

		async def _test() -> None:
			thing1, thing2 = trio.testing.memory_stream_pair()

			async def client_task ( stream: trio.abc.Stream ) -> None:
				xport = Transport ( stream )
				cli = pop3_trio.Client ( xport, False, 'milliways.local' )
				try:
					await cli.greeting()
					test.assertEqual ( cli.state, proto.SessionState.UNAUTHENTICATED )
					with test.assertRaises ( proto.Closed ):
						await cli.capa()
					test.assertEqual ( cli.state, proto.SessionState.CLOSED )
					test.assertEqual ( xport.close_calls, 1 )
					with test.assertRaises ( proto.Closed ):
						await cli.capa()
				finally:
					await cli.close()

			async with trio.open_nursery() as nursery:
				nursery.start_soon ( client_task, thing1 )
				nursery.start_soon ( serve_trio_stream, server, thing2 )

		trio.run ( _test )

	def test_auth_unsupported ( self ) -> None:
		test = self
		server = ScriptedServer (
			b'+OK POP3 server ready\r\n',
			b'+OK\r\nSASL LOGIN\r\nUIDL\r\n.\r\n', # CAPA
			b'+OK bye\r\n', # QUIT
		)

		async def _test() -> None:
			thing1, thing2 = trio.testing.memory_stream_pair()

			async def client_task ( stream: trio.abc.Stream ) -> None:
				cli = pop3_trio.Client ( Transport ( stream ), False, 'milliways.local' )
				try:
					await cli.greeting()
					with test.assertRaises ( proto.AuthUnsupported ):
						await cli.auth ( 'tim', 'secret' )
					test.assertEqual ( cli.state, proto.SessionState.UNAUTHENTICATED )
					await cli.quit()
				finally:
					await cli.close()

			async with trio.open_nursery() as nursery:
				nursery.start_soon ( client_task, thing1 )
				nursery.start_soon ( serve_trio_stream, server, thing2 )

		trio.run ( _test )
		self.assertEqual ( server.received, [ b'CAPA', b'QUIT' ] )

if __name__ == '__main__':
	logging.basicConfig (
		level = logging.DEBUG,
	)
	unittest.main()

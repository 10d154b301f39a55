from __future__ import annotations

# python imports:
import asyncio
import contextlib
import logging
import socket
import ssl
import threading
import trio # pip install trio trio-typing
from typing import List, Optional as Opt

logger = logging.getLogger ( __name__ )


class ScriptedServer:
	'''
	Canned POP3 server for client tests.

	Sends `greeting` (if any) as soon as the connection starts, then answers
	each line the client sends with the next reply in `replies`. Once the
	replies run out the connection is closed. Everything the client sent is
	recorded in `received` without its line terminator.
	'''
	starttls_pending: bool = False

	def __init__ ( self, greeting: Opt[bytes], *replies: bytes ) -> None:
		self.greeting = greeting
		self.replies = list ( replies )
		self.received: List[bytes] = []
		self._buf = b''

	@property
	def finished ( self ) -> bool:
		return not self.replies

	def startup ( self ) -> bytes:
		return self.greeting or b''

	def receive ( self, data: bytes ) -> bytes:
		self._buf += data
		out: List[bytes] = []
		while self.replies and ( eol := self._buf.find ( b'\n' ) ) >= 0:
			line, self._buf = self._buf[:eol+1], self._buf[eol+1:]
			line = line.rstrip ( b'\r\n' )
			self.received.append ( line )
			reply = self.replies.pop ( 0 )
			if line.upper() == b'STLS' and reply[:1] == b'+':
				self.starttls_pending = True
			out.append ( reply )
		return b''.join ( out )


def serve_socket ( server: ScriptedServer, sock: socket.socket, ssl_context: Opt[ssl.SSLContext] = None ) -> None:
	log = logger.getChild ( 'serve_socket' )
	try:
		sock.sendall ( server.startup() )
		while not server.finished:
			data = sock.recv ( 4096 )
			if not data:
				break
			sock.sendall ( server.receive ( data ) )
			if server.starttls_pending:
				assert ssl_context is not None
				server.starttls_pending = False
				sock = ssl_context.wrap_socket ( sock, server_side = True )
	except OSError as e:
		log.debug ( f'{e!r}' )
	finally:
		sock.close()


def serve_socket_thread ( server: ScriptedServer, sock: socket.socket, ssl_context: Opt[ssl.SSLContext] = None ) -> threading.Thread:
	thread = threading.Thread ( target = serve_socket, args = ( server, sock, ssl_context ), daemon = True )
	thread.start()
	return thread


async def serve_trio_stream ( server: ScriptedServer, stream: trio.abc.Stream, ssl_context: Opt[ssl.SSLContext] = None ) -> None:
	log = logger.getChild ( 'serve_trio_stream' )
	try:
		if ( data := server.startup() ):
			await stream.send_all ( data )
		while not server.finished:
			data = await stream.receive_some()
			if not data:
				break
			if ( data := server.receive ( data ) ):
				await stream.send_all ( data )
			if server.starttls_pending:
				assert ssl_context is not None
				server.starttls_pending = False
				stream = trio.SSLStream ( stream, ssl_context, server_side = True )
	except ( trio.BrokenResourceError, trio.ClosedResourceError ) as e:
		log.debug ( f'{e!r}' )
	finally:
		with trio.move_on_after ( 0.05 ):
			await stream.aclose()


async def serve_asyncio ( server: ScriptedServer, sock: socket.socket ) -> None:
	rx, tx = await asyncio.open_connection ( sock = sock )
	try:
		tx.write ( server.startup() )
		await tx.drain()
		while not server.finished:
			data = await rx.read ( 4096 )
			if not data:
				break
			tx.write ( server.receive ( data ) )
			await tx.drain()
	finally:
		tx.close()
		with contextlib.suppress ( OSError ):
			await tx.wait_closed()

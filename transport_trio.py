from __future__ import annotations

# python imports:
import logging
import math
import trio # pip install trio trio-typing
from typing import Type

# email_proto imports:
from transport import AsyncTransport

logger = logging.getLogger ( __name__ )


class TrioTransport ( AsyncTransport ):
	happy_eyeballs_delay: float = 0.25 # this is the same as trio's default circa version 0.16.0
	stream: trio.abc.Stream

	def __init__ ( self, stream: trio.abc.Stream ) -> None:
		self.stream = stream

	@classmethod
	async def connect ( cls: Type[TrioTransport], hostname: str, port: int, tls: bool ) -> TrioTransport:
		#log = logger.getChild ( 'TrioTransport.connect' )
		stream = await trio.open_tcp_stream ( hostname, port,
			happy_eyeballs_delay = cls.happy_eyeballs_delay,
		)
		self = cls ( stream )
		if tls:
			await self.starttls_client ( hostname )
		return self

	def _deadline ( self ) -> float:
		return math.inf if self.timeout is None else self.timeout

	async def read ( self ) -> bytes:
		#log = logger.getChild ( 'TrioTransport.read' )
		try:
			with trio.move_on_after ( self._deadline() ):
				return await self.stream.receive_some()
		except ( trio.BrokenResourceError, trio.ClosedResourceError ) as e:
			raise ConnectionError ( repr ( e ) ) from e
		raise TimeoutError ( f'{type(self).__module__}.{type(self).__name__} timeout waiting to read data' )

	async def write ( self, data: bytes ) -> None:
		#log = logger.getChild ( 'TrioTransport.write' )
		try:
			with trio.move_on_after ( self._deadline() ):
				await self.stream.send_all ( data )
				return
		except ( trio.BrokenResourceError, trio.ClosedResourceError ) as e:
			raise ConnectionError ( repr ( e ) ) from e
		raise TimeoutError ( f'{type(self).__module__}.{type(self).__name__} timeout waiting to write data' )

	async def starttls_client ( self, server_hostname: str ) -> None:
		context = self.ssl_context_or_default_client()

		self.stream = trio.SSLStream (
			self.stream,
			ssl_context = context,
			server_hostname = server_hostname,
		)

	async def close ( self ) -> None:
		#log = logger.getChild ( 'TrioTransport.close' )
		with trio.move_on_after ( 0.05 ):
			await self.stream.aclose()

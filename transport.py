# python imports:
from abc import ABCMeta, abstractmethod
import logging
import ssl
from typing import Optional as Opt

# email_proto imports:
from util import BYTES, not_implemented

logger = logging.getLogger ( __name__ )


class Transport ( metaclass = ABCMeta ):
	ssl_context: Opt[ssl.SSLContext] = None
	timeout: Opt[float] = None # seconds per read/write, None waits forever

	def ssl_context_or_default_client ( self ) -> ssl.SSLContext:
		if self.ssl_context is None:
			self.ssl_context = ssl.create_default_context ( ssl.Purpose.SERVER_AUTH )
		return self.ssl_context


class SyncTransport ( Transport ):
	@abstractmethod
	def read ( self ) -> bytes:
		not_implemented ( self, 'read' )

	@abstractmethod
	def write ( self, data: BYTES ) -> None:
		not_implemented ( self, 'write' )

	@abstractmethod
	def starttls_client ( self, server_hostname: str ) -> None:
		not_implemented ( self, 'starttls_client' )

	@abstractmethod
	def close ( self ) -> None:
		not_implemented ( self, 'close' )


class AsyncTransport ( Transport ):
	@abstractmethod
	async def read ( self ) -> bytes:
		not_implemented ( self, 'read' )

	@abstractmethod
	async def write ( self, data: BYTES ) -> None:
		not_implemented ( self, 'write' )

	@abstractmethod
	async def starttls_client ( self, server_hostname: str ) -> None:
		not_implemented ( self, 'starttls_client' )

	@abstractmethod
	async def close ( self ) -> None:
		not_implemented ( self, 'close' )

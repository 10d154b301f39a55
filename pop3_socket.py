from __future__ import annotations

# python imports:
from typing import Optional as Opt, Type

# mail_proto imports:
import pop3_proto as proto
import pop3_sync
from transport_socket import SocketTransport as Transport

class Client ( pop3_sync.Client ):
	@classmethod
	def connect ( cls: Type[Client],
		hostname: str,
		port: Opt[int] = None,
		tls: bool = False,
	) -> Client:
		if port is None:
			port = proto.POP3S_PORT if tls else proto.POP3_PORT
		transport = Transport.connect ( hostname, port, tls )
		self = cls ( transport, tls, hostname )
		try:
			self.greeting()
		except Exception:
			self.close()
			raise
		return self

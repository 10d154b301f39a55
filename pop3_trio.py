from __future__ import annotations

# python imports:
from typing import Optional as Opt, Type

# mail_proto imports:
import pop3_proto as proto
import pop3_async
from transport_trio import TrioTransport as Transport

class Client ( pop3_async.Client ):
	@classmethod
	async def connect ( cls: Type[Client],
		hostname: str,
		port: Opt[int] = None,
		tls: bool = False,
	) -> Client:
		if port is None:
			port = proto.POP3S_PORT if tls else proto.POP3_PORT
		transport = await Transport.connect ( hostname, port, tls )
		self = cls ( transport, tls, hostname )
		try:
			await self.greeting()
		except Exception:
			await self.close()
			raise
		return self

import trustme # pip install trustme
import ssl

class ServerOnly:
	''' throwaway CA plus a certificate for the test server, the client verifies it '''
	def __init__ ( self, *,
		server_hostname: str, # ex: 'pop.example.org'
	) -> None:
		self.server_hostname = server_hostname
		self.ca = trustme.CA()
		self.server_cert = self.ca.issue_cert ( self.server_hostname )

	def server_context ( self ) -> ssl.SSLContext:
		ctx = ssl.create_default_context ( ssl.Purpose.CLIENT_AUTH )
		self.server_cert.configure_cert ( ctx )
		ctx.verify_mode = ssl.CERT_NONE # no client certificates
		return ctx

	def client_context ( self ) -> ssl.SSLContext:
		ctx = ssl.create_default_context()
		self.ca.configure_trust ( ctx )
		return ctx

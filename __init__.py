# system imports:
import packaging.version

# email_proto imports:
import pop3_proto

__version__ = packaging.version.parse ( '0.2.0' )

'''
NOTE: the individual front-ends aren't automatically imported here because
most users only need one I/O flavour.

Import them directly instead:

import pop3_socket

from pop3_trio import Client
'''

import base64
from typing import NoReturn, Union

BYTES = Union[bytes,bytearray,memoryview]
bytes_types = ( bytes, bytearray, memoryview )

def b2s ( b: BYTES, encoding: str = 'us-ascii', errors: str = 'strict' ) -> str:
	return bytes ( b ).decode ( encoding, errors )

def s2b ( s: str, encoding: str = 'us-ascii', errors: str = 'strict' ) -> bytes:
	return s.encode ( encoding, errors )

def strip_eol ( b: BYTES ) -> bytes:
	b = bytes ( b )
	if b.endswith ( b'\r\n' ):
		return b[:-2]
	if b.endswith ( b'\n' ):
		return b[:-1]
	return b

def b64_encode_str ( s: str, encoding: str = 'us-ascii' ) -> str:
	return b2s ( base64.b64encode ( s2b ( s, encoding ) ) )

def not_implemented ( obj: object, method: str ) -> NoReturn:
	cls = type ( obj )
	raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.{method}()' )

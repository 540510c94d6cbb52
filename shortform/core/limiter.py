from slowapi import Limiter
from slowapi.util import get_remote_address

# Webhook callers are unauthenticated; key by client address.
limiter = Limiter(key_func=get_remote_address)

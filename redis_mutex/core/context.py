# redis_mutex/core/context.py

import contextvars

lock_name_ctx = contextvars.ContextVar("lock_name", default=None)

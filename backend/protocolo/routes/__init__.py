from importlib import import_module

modules = [
    'auth',
    'protocols',
    'templates',
    'users',
    'roles',
    'logs',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules

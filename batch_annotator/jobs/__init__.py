from .service import JobService, DispatcherFactory

__all__ = ['JobService', 'DispatcherFactory']

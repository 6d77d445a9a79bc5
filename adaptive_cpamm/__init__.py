"""
Adaptive CPAMM Package

Core imports are lazily loaded so that importing a submodule does not pull
in the whole engine. For direct module access, import from submodules:

    from adaptive_cpamm.amm import AdaptivePool, InMemoryToken
    from adaptive_cpamm.config import load_config
    from adaptive_cpamm.exceptions import CircuitBreakerTripped
"""

__version__ = "0.3.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'AdaptivePool':
        from .amm import AdaptivePool
        return AdaptivePool
    elif name == 'InMemoryToken':
        from .amm import InMemoryToken
        return InMemoryToken
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'adaptive_cpamm' has no attribute {name!r}")

__all__ = ['AdaptivePool', 'InMemoryToken', 'load_config']

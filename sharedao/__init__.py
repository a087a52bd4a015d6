"""
ShareDAO Package

Core imports are lazily loaded so that importing a submodule does not pull
in the whole engine. For direct module access, import from submodules:

    from sharedao.governance import DAO, Side, proposal_key
    from sharedao.tokens import GovToken, TokenCustody
    from sharedao.config import load_config
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'DAO':
        from .governance.dao import DAO
        return DAO
    elif name == 'Side':
        from .governance.voting import Side
        return Side
    elif name == 'proposal_key':
        from .governance.proposals import proposal_key
        return proposal_key
    elif name == 'GovToken':
        from .tokens.asset import GovToken
        return GovToken
    elif name == 'TokenCustody':
        from .tokens.asset import TokenCustody
        return TokenCustody
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'ShareDAOException':
        from .exceptions import ShareDAOException
        return ShareDAOException
    raise AttributeError(f"module 'sharedao' has no attribute {name!r}")

__all__ = ['DAO', 'Side', 'proposal_key', 'GovToken', 'TokenCustody', 'load_config', 'ShareDAOException']

"""Uniswap v4 swap core for launched tokens: quotes, router calldata and approvals."""

__version__ = "0.1.0"
__all__ = ["__version__"]

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _load_version

from .core.cache import CacheElement, CacheManager
from .core.config import IntegrationConfig
from .core.exceptions import (
    CacheError,
    ConfigurationError,
    GroupingError,
    IntegrationError,
    PartIntError,
    SpecParseError,
)
from .core.grouping import Group, format_groups, group_product_terms
from .core.integral import Integral, RangeVolume
from .core.names import NameRegistry, RangeToken, intern_range
from .core.product import Product
from .core.spec_parser import parse_arg_list, parse_integral_spec
from .core.terms import (
    Category,
    CategoryTerm,
    Constant,
    Exponential,
    Function,
    Polynomial,
    RealTerm,
    RealVariable,
    Term,
)
from .factory import ClassFactory

try:
    __version__ = _load_version("partint")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "Product",
    "IntegrationConfig",
    "Term",
    "RealTerm",
    "CategoryTerm",
    "RealVariable",
    "Category",
    "Constant",
    "Polynomial",
    "Exponential",
    "Function",
    "Integral",
    "RangeVolume",
    "Group",
    "group_product_terms",
    "format_groups",
    "CacheManager",
    "CacheElement",
    "NameRegistry",
    "RangeToken",
    "intern_range",
    "parse_arg_list",
    "parse_integral_spec",
    "ClassFactory",
    "PartIntError",
    "ConfigurationError",
    "SpecParseError",
    "GroupingError",
    "IntegrationError",
    "CacheError",
    "__version__",
]

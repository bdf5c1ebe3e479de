"""Per-dialect type and function mapping tables"""

from .datatypes import TypeMappingTable, build_type_table, get_type_mappings, get_type_table, has_type_mapping
from .functions import DialectFunctionRegistry, FunctionCategory, FunctionMapping, get_function_registry

__all__ = [
    "TypeMappingTable",
    "build_type_table",
    "get_type_mappings",
    "get_type_table",
    "has_type_mapping",
    "DialectFunctionRegistry",
    "FunctionCategory",
    "FunctionMapping",
    "get_function_registry",
]

"""pyinteractive: persistent Python evaluation with transitive module references."""

from pyinteractive.evaluator import EvaluationState, Evaluator, PythonEvaluator
from pyinteractive.exceptions import (
    ConfigurationError,
    EvaluationError,
    ModuleLoadError,
    PyInteractiveError,
    ReferenceConversionError,
    ReferenceResolutionError,
)
from pyinteractive.modules import ModuleName, load_module
from pyinteractive.options import ScriptOptions, create_options
from pyinteractive.references import Reference, baseline_references, build_references
from pyinteractive.resolver import (
    DependencyResolver,
    ImplicitModules,
    ModuleResolverCache,
    ResolutionResult,
    ResolvedSet,
    is_implicit_module,
    resolve_dependencies,
)
from pyinteractive.search_paths import build_search_paths
from pyinteractive.session import EvaluationSession

__all__ = [
    # Session
    "EvaluationSession",
    "Evaluator",
    "EvaluationState",
    "PythonEvaluator",
    # Configuration
    "ScriptOptions",
    "create_options",
    # Resolution
    "build_search_paths",
    "DependencyResolver",
    "ImplicitModules",
    "ModuleResolverCache",
    "ResolutionResult",
    "ResolvedSet",
    "is_implicit_module",
    "resolve_dependencies",
    "ModuleName",
    "load_module",
    # References
    "Reference",
    "build_references",
    "baseline_references",
    # Exceptions
    "PyInteractiveError",
    "ModuleLoadError",
    "ReferenceResolutionError",
    "ReferenceConversionError",
    "ConfigurationError",
    "EvaluationError",
]

"""Stable identity digests for response handlers.

A *handler* turns ``(request, response)`` into a request result.  Callers
may refer to the same behaviour in several ways, and every one of them has
to produce the same cache key:

* a named function, or its dotted path (``"package.module.function"``),
* a lambda or closure,
* a class-level function: ``Type.method``, ``"package.module.Type::method"``
  or the pair ``(Type, "method")``,
* an instance method: ``obj.method`` or the pair ``(obj, "method")``,
* a callable object (an instance whose type defines ``__call__``),
* a :func:`functools.partial`, identified by its function and its bound
  arguments.

:func:`resolve_identity` reduces any of these to a :class:`HandlerIdentity`
built only from names and definition sites, never from object identity.
:func:`fingerprint` hashes the identity's canonical string into eight hex
digits.  Methods are named after their *defining* type (the first class in
the MRO whose namespace holds the method), so ``(obj, "m")``,
``(type(obj), "m")`` and ``"module.Type::m"`` agree.

The digest is a CRC-32: fast and stable across processes, but only 32 bits
wide.  Equal fingerprints mean "very likely the same handler", not proof.

Example::

    from steadyhttp.fingerprint import fingerprint

    fingerprint("json.loads")        # '1f0c2a5e'-style string
    fingerprint((Parser(), "parse")) == fingerprint("app.parsing.Parser::parse")
"""

from __future__ import annotations

import builtins
import enum
import functools
import importlib
import inspect
import re
import types
import zlib
from dataclasses import dataclass
from typing import Any, Callable, Optional

from steadyhttp.exceptions import InvalidHandlerError

METHOD_SEPARATOR = "::"

FINGERPRINT_PATTERN = re.compile(r"^[0-9a-f]{8}$")

_C_METHOD_DESCRIPTORS = (
    types.MethodDescriptorType,
    types.WrapperDescriptorType,
    types.ClassMethodDescriptorType,
)


class HandlerKind(str, enum.Enum):
    """Which representation a handler was resolved from."""

    FUNCTION = "function"
    STATIC_METHOD = "static_method"
    BOUND_METHOD = "bound_method"
    INVOKABLE = "invokable"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class HandlerIdentity:
    """Canonical, representation-independent description of a handler.

    Attributes:
        kind: The representation the handler was given in.  Informational
            only; it does not take part in :attr:`canonical`.
        owner: Module-qualified name of the function or of the defining type.
        method: Method name when the handler is a method or callable object.
        site: ``file:line`` definition site for anonymous handlers and
            callable objects.
    """

    kind: HandlerKind
    owner: str
    method: Optional[str] = None
    site: Optional[str] = None

    @property
    def canonical(self) -> str:
        """The string that is hashed into the fingerprint."""
        text = self.owner
        if self.method is not None:
            text = f"{text}{METHOD_SEPARATOR}{self.method}"
        if self.site is not None:
            text = f"{text}@{self.site}"
        return text


def fingerprint(handler: Any) -> str:
    """Return the 8-character lowercase hex fingerprint of *handler*.

    Args:
        handler: Any supported handler representation.

    Returns:
        The CRC-32 of the handler's canonical identity, zero padded.

    Raises:
        InvalidHandlerError: If *handler* is not a handler at all.
    """
    return hash_identity(resolve_identity(handler).canonical)


def hash_identity(canonical: str) -> str:
    """Hash a canonical identity string into eight hex digits."""
    return format(zlib.crc32(canonical.encode("utf-8")) & 0xFFFFFFFF, "08x")


def resolve_identity(handler: Any) -> HandlerIdentity:
    """Reduce *handler* to its :class:`HandlerIdentity`.

    Raises:
        InvalidHandlerError: If *handler* is not callable, names an object
            that cannot be imported, or is a pair whose method is missing.
    """
    if isinstance(handler, str):
        return _identity_from_string(handler)
    if isinstance(handler, (tuple, list)):
        return _identity_from_pair(handler)
    if isinstance(handler, (staticmethod, classmethod)):
        return resolve_identity(handler.__func__)
    if inspect.ismethod(handler):
        owner = handler.__self__
        if isinstance(owner, type):
            return _method_identity(owner, handler.__func__.__name__, HandlerKind.STATIC_METHOD)
        return _method_identity(type(owner), handler.__func__.__name__, HandlerKind.BOUND_METHOD)
    if isinstance(handler, _C_METHOD_DESCRIPTORS):
        # str.strip, dict.get: unbound methods of a built-in type.
        return _method_identity(handler.__objclass__, handler.__name__, HandlerKind.STATIC_METHOD)
    if isinstance(handler, types.MethodWrapperType):
        return _method_identity(type(handler.__self__), handler.__name__, HandlerKind.BOUND_METHOD)
    if inspect.isbuiltin(handler):
        owner = getattr(handler, "__self__", None)
        if owner is not None and not inspect.ismodule(owner):
            owner_type = owner if isinstance(owner, type) else type(owner)
            return _method_identity(owner_type, handler.__name__, HandlerKind.BOUND_METHOD)
        return HandlerIdentity(HandlerKind.FUNCTION, _qualified_name(handler))
    if inspect.isfunction(handler):
        return _function_identity(handler)
    if isinstance(handler, type):
        return HandlerIdentity(HandlerKind.FUNCTION, _qualified_name(handler))
    if isinstance(handler, functools.partial):
        return _partial_identity(handler)
    if callable(handler):
        handler_type = type(handler)
        defining = _defining_type(handler_type, "__call__")
        site = _definition_site(vars(defining)["__call__"])
        return HandlerIdentity(HandlerKind.INVOKABLE, _qualified_name(defining), "__call__", site)
    raise InvalidHandlerError(f"'handler' option is not callable: {handler!r}")


def resolve_callable(handler: Any) -> Callable[..., Any]:
    """Return the object the executor should invoke for *handler*.

    String and pair forms are looked up; callables are returned unchanged.

    Raises:
        InvalidHandlerError: If *handler* does not resolve to a callable.
    """
    if isinstance(handler, str):
        if METHOD_SEPARATOR in handler:
            type_path, _, method = handler.partition(METHOD_SEPARATOR)
            target = getattr(_import_type(type_path, handler), method, None)
        else:
            target = _import_object(handler)
    elif isinstance(handler, (tuple, list)):
        _check_pair(handler)
        target = getattr(handler[0], handler[1], None)
    else:
        target = handler

    if target is None or not callable(target):
        raise InvalidHandlerError(f"'handler' option is not callable: {handler!r}")
    return target


def is_fingerprint(value: str) -> bool:
    """Return ``True`` if *value* looks like a fingerprint."""
    return bool(FINGERPRINT_PATTERN.match(value))


# ------------------------------------------------------------------ #
# Private helpers
# ------------------------------------------------------------------ #


def _identity_from_string(text: str) -> HandlerIdentity:
    if METHOD_SEPARATOR in text:
        type_path, _, method = text.partition(METHOD_SEPARATOR)
        owner_type = _import_type(type_path, text)
        member = getattr(owner_type, method, None)
        if not method or member is None or not callable(member):
            raise InvalidHandlerError(f"'handler' option is not callable: {text!r}")
        return _method_identity(owner_type, method, HandlerKind.STATIC_METHOD)

    target = _import_object(text)
    if not callable(target):
        raise InvalidHandlerError(f"'handler' option is not callable: {text!r}")
    return resolve_identity(target)


def _identity_from_pair(pair: tuple[Any, ...] | list[Any]) -> HandlerIdentity:
    _check_pair(pair)
    target, name = pair
    member = getattr(target, name, None)
    if member is None or not callable(member):
        raise InvalidHandlerError(f"'handler' option is not callable: {pair!r}")
    if isinstance(target, type):
        return _method_identity(target, name, HandlerKind.STATIC_METHOD)
    return _method_identity(type(target), name, HandlerKind.BOUND_METHOD)


def _check_pair(pair: tuple[Any, ...] | list[Any]) -> None:
    if len(pair) != 2 or not isinstance(pair[1], str):
        raise InvalidHandlerError(
            f"'handler' pair must be (type_or_instance, method_name), got {pair!r}"
        )


def _function_identity(func: Callable[..., Any]) -> HandlerIdentity:
    qualname: str = func.__qualname__
    parts = qualname.split(".")
    module = func.__module__ or ""

    # Lambdas and functions defined inside another function have no stable
    # name of their own, so their definition site stands in for one.
    if func.__name__ == "<lambda>" or (len(parts) > 1 and parts[-2] == "<locals>"):
        return HandlerIdentity(
            HandlerKind.ANONYMOUS, f"{module}.{qualname}", site=_definition_site(func)
        )
    if len(parts) > 1:
        owner = ".".join(parts[:-1])
        return HandlerIdentity(HandlerKind.STATIC_METHOD, f"{module}.{owner}", parts[-1])
    return HandlerIdentity(HandlerKind.FUNCTION, f"{module}.{qualname}")


def _partial_identity(handler: functools.partial) -> HandlerIdentity:
    """``functools.partial(<func identity>, <args>, <key>=<value>)``.

    Callable arguments contribute their own canonical identity; anything
    else contributes its ``repr``.
    """
    tokens = [resolve_identity(handler.func).canonical]
    tokens += [_argument_token(value) for value in handler.args]
    tokens += [f"{key}={_argument_token(value)}" for key, value in sorted(handler.keywords.items())]
    return HandlerIdentity(HandlerKind.INVOKABLE, f"functools.partial({', '.join(tokens)})")


def _argument_token(value: Any) -> str:
    if callable(value):
        return resolve_identity(value).canonical
    return repr(value)


def _method_identity(owner_type: type, name: str, kind: HandlerKind) -> HandlerIdentity:
    return HandlerIdentity(kind, _qualified_name(_defining_type(owner_type, name)), name)


def _defining_type(owner_type: type, name: str) -> type:
    """First class in the MRO of *owner_type* whose namespace defines *name*."""
    for klass in inspect.getmro(owner_type):
        if name in vars(klass):
            return klass
    return owner_type


def _definition_site(func: Any) -> str:
    code = getattr(inspect.unwrap(getattr(func, "__func__", func)), "__code__", None)
    if code is None:
        return "builtin"
    return f"{code.co_filename}:{code.co_firstlineno}"


def _qualified_name(obj: Any) -> str:
    module = getattr(obj, "__module__", None) or "builtins"
    return f"{module}.{obj.__qualname__}"


def _import_type(path: str, original: str) -> type:
    owner = _import_object(path)
    if not isinstance(owner, type):
        raise InvalidHandlerError(f"'handler' option does not name a type: {original!r}")
    return owner


def _import_object(path: str) -> Any:
    """Import ``package.module.attr.attr`` using the longest importable prefix.

    A bare name is looked up in :mod:`builtins`.
    """
    if not path:
        raise InvalidHandlerError("'handler' option is empty")
    parts = path.split(".")
    if len(parts) == 1:
        if not hasattr(builtins, path):
            raise InvalidHandlerError(f"'handler' option is not callable: {path!r}")
        return getattr(builtins, path)

    for index in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:index])
        try:
            obj: Any = importlib.import_module(module_name)
        except ImportError:
            continue
        for attr in parts[index:]:
            try:
                obj = getattr(obj, attr)
            except AttributeError as exc:
                raise InvalidHandlerError(
                    f"'handler' option cannot be resolved: {path!r}"
                ) from exc
        return obj
    raise InvalidHandlerError(f"'handler' option cannot be imported: {path!r}")

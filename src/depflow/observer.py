"""Observers convert plain state into tracked state.

Every tracked container carries one Observer under ``__ob__``. The Observer
owns the container's structural Subject (fired when keys or elements are
added or removed) and, for keyed containers, one TrackedProperty per key.

Three kinds of containers are tracked:

- ``dict`` values are converted into ReactiveDict,
- ``list`` values are converted into ReactiveList (see depflow.collection),
- instances of ordinary classes are tracked in place: their class is swapped
  for a generated subclass that routes attribute access through the
  instance's TrackedProperties.

Everything else (numbers, strings, tuples, builtins, slotted or frozen
objects) is left as-is and is never tracked.
"""

from __future__ import annotations

import logging
import math
import types
from collections.abc import Iterator, Mapping, MutableMapping, Sequence, Set
from functools import partial
from typing import Any, Callable

from depflow._tracking import get_stack
from depflow.collection import ReactiveList
from depflow.errors import warn
from depflow.subject import Subject

logger = logging.getLogger("depflow.observer")

OB_KEY = "__ob__"


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

_PRIMITIVES = (type(None), bool, int, float, complex, str, bytes)
_VALUE_TYPES = _PRIMITIVES + (tuple, frozenset)
_NUMBERS = (int, float, complex)
_NEVER_OBSERVED = (
    type,
    types.ModuleType,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    Mapping,
    Sequence,
    Set,
)


def is_primitive(value: Any) -> bool:
    return isinstance(value, _PRIMITIVES)


def is_value_type(value: Any) -> bool:
    """Immutable values are compared by equality, everything else by identity."""
    return isinstance(value, _VALUE_TYPES)


def same_value(a: Any, b: Any) -> bool:
    """Change detection used by setters and subscribers.

    Two NaNs are the same value, and so are equal numbers of different types
    (``1`` and ``1.0``). ``True`` is not the number ``1``. Mutable values are
    the same only when they are the same object.
    """
    if a is b:
        return True
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    if type(a) in _NUMBERS and type(b) in _NUMBERS:
        return bool(a == b)
    if type(a) is not type(b) or not is_value_type(a):
        return False
    return bool(a == b)


def get_observer(value: Any) -> Observer | None:
    try:
        attrs = object.__getattribute__(value, "__dict__")
    except AttributeError:
        return None
    ob = attrs.get(OB_KEY)
    return ob if isinstance(ob, Observer) else None


class Observer:
    """Attached to each tracked container as ``__ob__``."""

    __slots__ = ("value", "subject", "root_count", "props")
    __reactive_skip__ = True

    def __init__(self, value: Any) -> None:
        self.value = value
        self.subject = Subject()
        # Number of root state holders using this container as their root.
        self.root_count = 0
        self.props: dict[Any, TrackedProperty] = {}
        object.__getattribute__(value, "__dict__")[OB_KEY] = self

    def walk(self, items) -> None:
        """Install a TrackedProperty for every (key, value) pair."""
        for key, value in items:
            define_reactive(self.value, key, value)

    def observe_array(self, items) -> list:
        """Return ``items`` with every element made trackable."""
        return [reactive(item) for item in items]

    def __repr__(self) -> str:
        return f"Observer({type(self.value).__name__}, keys={len(self.props)})"


class TrackedProperty:
    """Cached value, owning Subject and nested Observer of one tracked key.

    ``getter``/``setter`` hold a pre-existing accessor pair when the key was
    a ``property`` on the owner's class. A getter without a setter makes the
    key read-only: writes are ignored.
    """

    __slots__ = ("value", "subject", "child_ob", "getter", "setter", "shallow")

    def __init__(
        self,
        value: Any = None,
        *,
        getter: Callable[[], Any] | None = None,
        setter: Callable[[Any], None] | None = None,
        shallow: bool = False,
    ) -> None:
        self.subject = Subject()
        self.getter = getter
        self.setter = setter
        self.shallow = shallow
        if getter is None and not shallow:
            value = reactive(value)
        self.value = value
        self.child_ob = None if shallow else observe(value)

    def peek(self) -> Any:
        """Current value, without registering a dependency."""
        return self.getter() if self.getter is not None else self.value

    def get(self) -> Any:
        value = self.peek()
        if get_stack().current is not None:
            self.subject.depend()
            if self.child_ob is not None:
                self.child_ob.subject.depend()
                if isinstance(value, ReactiveList):
                    depend_array(value)
        return value

    def set(self, new_value: Any) -> None:
        if same_value(new_value, self.peek()):
            return
        if self.getter is not None and self.setter is None:
            return
        if not self.shallow:
            new_value = reactive(new_value)
        if self.setter is not None:
            self.setter(new_value)
        else:
            self.value = new_value
        self.child_ob = None if self.shallow else observe(new_value)
        self.subject.notify()

    def __repr__(self) -> str:
        return f"TrackedProperty({self.peek()!r})"


class ReactiveDict(MutableMapping):
    """A dict whose keys are TrackedProperties.

    Reading a key tracks that key. Iteration, ``len`` and ``in`` track the
    dict's structural Subject, which fires when keys are added or removed.
    """

    __reactive_skip__ = True

    def __init__(self, data=(), /, **kwargs) -> None:
        ob = Observer(self)
        self._props = ob.props
        ob.walk(dict(data, **kwargs).items())

    def _depend(self) -> None:
        self.__ob__.subject.depend()

    def __getitem__(self, key):
        prop = self._props.get(key)
        if prop is None:
            # A later insert of this key should re-run the reader.
            self._depend()
            raise KeyError(key)
        return prop.get()

    def __setitem__(self, key, value) -> None:
        prop = self._props.get(key)
        if prop is not None:
            prop.set(value)
        else:
            set_property(self, key, value)

    def __delitem__(self, key) -> None:
        if key not in self._props:
            raise KeyError(key)
        delete_property(self, key)

    def __iter__(self) -> Iterator:
        self._depend()
        return iter(list(self._props))

    def __len__(self) -> int:
        self._depend()
        return len(self._props)

    def __contains__(self, key) -> bool:
        self._depend()
        return key in self._props

    def __repr__(self) -> str:
        return f"ReactiveDict({ {k: p.peek() for k, p in self._props.items()}!r})"


# ─── Plain objects ───────────────────────────────────────────────────────────

# Generated subclasses hold their base in __bases__, so entries live for the
# whole process.
_reactive_classes: dict[type, type] = {}


def _class_attribute(cls: type, name: str) -> Any:
    for klass in cls.__mro__:
        if klass is object:
            break
        if name in klass.__dict__:
            return klass.__dict__[name]
    return MISSING


def _is_data_descriptor(attr: Any) -> bool:
    kind = type(attr)
    return hasattr(kind, "__set__") or hasattr(kind, "__delete__")


def _is_plain_default(attr: Any) -> bool:
    """A class-level default value: not a method, descriptor or nested class."""
    return attr is not MISSING and not hasattr(type(attr), "__get__") and not callable(attr)


def _plain_defaults(cls: type) -> dict[str, Any]:
    """Public class-level defaults of ``cls``, nearest definition first."""
    defaults: dict[str, Any] = {}
    for klass in cls.__mro__:
        if klass is object:
            break
        for name, attr in vars(klass).items():
            if name.startswith("_") or name in defaults:
                continue
            defaults[name] = attr
    return {name: attr for name, attr in defaults.items() if _is_plain_default(attr)}


def _is_frozen_dataclass(cls: type) -> bool:
    params = getattr(cls, "__dataclass_params__", None)
    return params is not None and params.frozen


def _raw_attrs(value: Any) -> dict:
    return object.__getattribute__(value, "__dict__")


def _reactive_class(cls: type) -> type:
    """Generated subclass of ``cls`` that reads and writes through ``__ob__``."""
    rcls = _reactive_classes.get(cls)
    if rcls is not None:
        return rcls
    defaults = _plain_defaults(cls)

    def __getattribute__(self, name):
        ob = _raw_attrs(self).get(OB_KEY)
        if ob is not None:
            prop = ob.props.get(name)
            if prop is not None:
                return prop.get()
            if name in defaults:
                # Falls back to the class default until the first write.
                ob.subject.depend()
        try:
            return super(rcls, self).__getattribute__(name)
        except AttributeError:
            # A later set_property() of this name should re-run the reader.
            if ob is not None:
                ob.subject.depend()
            raise

    def __setattr__(self, name, value):
        ob = _raw_attrs(self).get(OB_KEY)
        prop = ob.props.get(name) if ob is not None else None
        if prop is not None:
            prop.set(value)
        elif (
            ob is None
            or name == OB_KEY
            or name in _raw_attrs(self)
            or (name not in defaults and _class_attribute(cls, name) is not MISSING)
        ):
            super(rcls, self).__setattr__(name, value)
        else:
            set_property(self, name, value)

    def __delattr__(self, name):
        ob = _raw_attrs(self).get(OB_KEY)
        if ob is not None and name in ob.props:
            delete_property(self, name)
        else:
            super(rcls, self).__delattr__(name)

    namespace = {
        "__getattribute__": __getattribute__,
        "__setattr__": __setattr__,
        "__delattr__": __delattr__,
        "__module__": cls.__module__,
        "__qualname__": cls.__qualname__,
        "__reactive_class__": True,
        "__reactive_defaults__": defaults,
    }
    rcls = type(cls)(cls.__name__, (cls,), namespace)
    _reactive_classes[cls] = rcls
    return rcls


def _can_observe_object(value: Any) -> bool:
    if isinstance(value, _NEVER_OBSERVED):
        return False
    cls = type(value)
    if getattr(cls, "__reactive_skip__", False) or _is_frozen_dataclass(cls):
        return False
    try:
        _raw_attrs(value)
    except AttributeError:
        return False
    return True


def _observe_object(value: Any) -> Observer | None:
    cls = type(value)
    try:
        rcls = _reactive_class(cls)
        object.__setattr__(value, "__class__", rcls)
    except TypeError:
        # The interpreter refuses __class__ assignment for this layout.
        logger.debug("Cannot track %s instances; left as plain state", cls.__qualname__)
        return None
    attrs = _raw_attrs(value)
    items = [(key, attrs.pop(key)) for key in list(attrs) if key != OB_KEY]
    # Immutable class defaults get a per-instance TrackedProperty up front.
    # Mutable ones stay shared on the class until the instance assigns its own.
    own = {key for key, _ in items}
    items += [
        (name, default)
        for name, default in rcls.__reactive_defaults__.items()
        if name not in own and is_value_type(default)
    ]
    ob = Observer(value)
    ob.walk(items)
    return ob


# ─── Public conversion API ───────────────────────────────────────────────────


def observe(value: Any, as_root: bool = False) -> Observer | None:
    """Return the Observer of ``value``, creating one for plain objects.

    Plain ``dict``/``list`` values cannot be tracked in place and yield
    ``None``; pass them through reactive() first.
    """
    if is_primitive(value):
        return None
    ob = get_observer(value)
    if ob is None and _can_observe_object(value):
        ob = _observe_object(value)
    if as_root and ob is not None:
        ob.root_count += 1
    return ob


def reactive(value: Any) -> Any:
    """Return the tracked form of ``value``.

    Usage:
        state = reactive({"todos": [], "filter": "all"})
        autorun(lambda: print(len(state["todos"])))
        state["todos"].append("write docs")
    """
    if isinstance(value, (ReactiveDict, ReactiveList)):
        return value
    if type(value) is dict:
        return ReactiveDict(value)
    if type(value) is list:
        return ReactiveList(value)
    observe(value)
    return value


def to_raw(value: Any) -> Any:
    """Copy tracked dicts and lists, recursively, into plain ones.

    Tracked objects are not copied: they are returned as-is, together with
    whatever they hold.
    """
    if isinstance(value, ReactiveDict):
        return {key: to_raw(prop.peek()) for key, prop in value._props.items()}
    if isinstance(value, ReactiveList):
        return [to_raw(item) for item in value._items]
    return value


def define_reactive(
    owner: Any,
    key: Any,
    value: Any = MISSING,
    *,
    getter: Callable[[], Any] | None = None,
    setter: Callable[[Any], None] | None = None,
    shallow: bool = False,
) -> TrackedProperty | None:
    """Install a TrackedProperty for ``key`` on a tracked owner.

    On plain objects a ``property`` of the same name on the owner's class is
    used as the accessor pair. Any other data descriptor (slots, custom
    descriptors) cannot be intercepted and the key is left untouched.
    """
    ob = get_observer(owner)
    if ob is None:
        ob = observe(owner)
    if ob is None:
        warn(f"Cannot define a reactive property on untracked value: {owner!r}")
        return None

    if not isinstance(owner, (ReactiveDict, ReactiveList)):
        attr = _class_attribute(type(owner), key)
        if isinstance(attr, property):
            if getter is None and attr.fget is not None:
                getter = partial(attr.fget, owner)
            if setter is None and attr.fset is not None:
                setter = partial(attr.fset, owner)
        elif attr is not MISSING and _is_data_descriptor(attr):
            return None
        raw = _raw_attrs(owner).pop(key, MISSING)
        if value is MISSING:
            value = raw

    if getter is not None:
        # Read-only accessors keep no cache of their own.
        value = getter() if setter is not None else None
    elif value is MISSING:
        value = None

    prop = TrackedProperty(value, getter=getter, setter=setter, shallow=shallow)
    ob.props[key] = prop
    return prop


def depend_array(items: ReactiveList) -> None:
    """Depend on every element of a list, since element reads are not tracked."""
    for item in items._items:
        ob = get_observer(item)
        if ob is not None:
            ob.subject.depend()
        if isinstance(item, ReactiveList):
            depend_array(item)


def traverse(value: Any, seen: set[int] | None = None) -> None:
    """Read everything reachable from ``value`` so each part becomes a dependency."""
    ob = get_observer(value)
    if ob is None:
        return
    seen = set() if seen is None else seen
    if ob.subject.id in seen:
        return
    seen.add(ob.subject.id)
    if isinstance(value, ReactiveList):
        for item in value:
            traverse(item, seen)
    elif isinstance(value, ReactiveDict):
        for key in value:
            traverse(value[key], seen)
    else:
        for key in list(ob.props):
            traverse(getattr(value, key), seen)


# ─── Mutation helpers ────────────────────────────────────────────────────────


def _is_index(target: Any, key: Any) -> bool:
    return (
        isinstance(target, (list, ReactiveList))
        and isinstance(key, int)
        and not isinstance(key, bool)
        and key >= 0
    )


def _has_key(target: Any, key: Any) -> bool:
    if isinstance(target, ReactiveDict):
        return key in target._props
    if isinstance(target, Mapping):
        return key in target
    ob = get_observer(target)
    if ob is not None and key in ob.props:
        return True
    try:
        if key in _raw_attrs(target):
            return True
    except AttributeError:
        pass
    if not isinstance(key, str):
        return False
    attr = _class_attribute(type(target), key)
    return attr is not MISSING and not _is_plain_default(attr)


def _has_own(target: Any, key: Any) -> bool:
    if isinstance(target, ReactiveDict):
        return key in target._props
    if isinstance(target, Mapping):
        return key in target
    ob = get_observer(target)
    if ob is not None and key in ob.props:
        return True
    try:
        return key in _raw_attrs(target)
    except AttributeError:
        return False


def _assign(target: Any, key: Any, value: Any) -> None:
    if isinstance(target, MutableMapping):
        target[key] = value
    else:
        setattr(target, key, value)


def _remove(target: Any, ob: Observer | None, key: Any) -> None:
    if ob is not None and key in ob.props:
        del ob.props[key]
    elif isinstance(target, MutableMapping):
        del target[key]
    elif ob is not None:
        del _raw_attrs(target)[key]
    else:
        delattr(target, key)


def set_property(target: Any, key: Any, value: Any) -> Any:
    """Set ``key`` on ``target``, making the key reactive if it is new.

    Adding a key to a tracked container notifies its structural Subject.
    Untracked containers receive a plain assignment.
    """
    if is_primitive(target):
        warn(f"Cannot set reactive property on None or primitive value: {target!r}")
        return value
    if _is_index(target, key):
        if isinstance(target, ReactiveList):
            target._pad(key)
            target.splice(key, 1, value)
        else:
            target.extend([None] * (key - len(target)))
            target[key : key + 1] = [value]
        return value
    if isinstance(target, (list, ReactiveList)):
        warn(f"Cannot set list index {key!r}: expected a non-negative int.", target)
        return value
    if _has_key(target, key):
        _assign(target, key, value)
        return value
    ob = get_observer(target)
    if ob is not None and ob.root_count:
        warn(
            "Avoid adding reactive properties to a root state object at runtime - "
            "declare it upfront.",
            target,
        )
        return value
    if ob is None:
        _assign(target, key, value)
        return value
    define_reactive(target, key, value)
    ob.subject.notify()
    return value


def delete_property(target: Any, key: Any) -> None:
    """Delete ``key`` from ``target`` and notify if the container is tracked."""
    if is_primitive(target):
        warn(f"Cannot delete reactive property on None or primitive value: {target!r}")
        return
    if _is_index(target, key):
        if isinstance(target, ReactiveList):
            target.splice(key, 1)
        else:
            del target[key : key + 1]
        return
    if isinstance(target, (list, ReactiveList)):
        warn(f"Cannot delete list index {key!r}: expected a non-negative int.", target)
        return
    ob = get_observer(target)
    if ob is not None and ob.root_count:
        warn("Avoid deleting properties on a root state object - just set it to None.", target)
        return
    if not _has_own(target, key):
        return
    _remove(target, ob, key)
    if ob is not None:
        ob.subject.notify()

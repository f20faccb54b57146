from __future__ import annotations

__all__ = [
    "Container",
    "NotReady",
    "Provider",
    "Provide",
    "as_",
    "inject",
    "providers",
    "containers",
    "register_loader_containers",
    "unregister_loader_containers",
]

import importlib.machinery
import sys
import types
import typing as t

import dependency_injector.containers as containers
import dependency_injector.providers as providers
from dependency_injector.containers import Container
from dependency_injector.providers import Provider
from dependency_injector.wiring import inject, Provide, TypeModifier

from tycoon.lib.sentinel import NotReady


def as_(type_: type) -> TypeModifier:
    # wiring.as_ is typed too loosely for the checker
    return TypeModifier(type_)


class PackageWiringLoader(object):
    """Wires containers into modules of selected packages as they are imported.

    dependency_injector's own AutoLoader wires every module imported after
    installation. Here each container is bound to package prefixes, so
    importing a third-party module never touches the container.
    """

    def __init__(self) -> None:
        self.bindings: dict[str, list[Container]] = {}
        self.path_hook: t.Callable[[str], t.Any] | None = None

    def register(self, *cts: Container, packages: t.Sequence[str]) -> None:
        for pkg in packages:
            self.bindings.setdefault(pkg, []).extend(cts)
        self.install()

    def unregister(self, *cts: Container) -> None:
        for pkg in list(self.bindings):
            remaining = [ct for ct in self.bindings[pkg] if ct not in cts]
            if remaining:
                self.bindings[pkg] = remaining
            else:
                del self.bindings[pkg]
        if not self.bindings:
            self.uninstall()

    def loaded(self, module: types.ModuleType) -> None:
        name = module.__name__
        for pkg, cts in self.bindings.items():
            if name == pkg or name.startswith(f"{pkg}."):
                for ct in cts:
                    ct.wire(modules=[module])

    def install(self) -> None:
        if self.path_hook is not None:
            return

        owner = self

        class WiringSourceLoader(importlib.machinery.SourceFileLoader):
            def exec_module(self, module: types.ModuleType) -> None:
                super().exec_module(module)
                owner.loaded(module)

        class WiringBytecodeLoader(importlib.machinery.SourcelessFileLoader):
            def exec_module(self, module: types.ModuleType) -> None:
                super().exec_module(module)
                owner.loaded(module)

        self.path_hook = importlib.machinery.FileFinder.path_hook(
            (importlib.machinery.ExtensionFileLoader, importlib.machinery.EXTENSION_SUFFIXES),
            (WiringSourceLoader, importlib.machinery.SOURCE_SUFFIXES),
            (WiringBytecodeLoader, importlib.machinery.BYTECODE_SUFFIXES),
        )
        sys.path_hooks.insert(0, self.path_hook)
        sys.path_importer_cache.clear()

    def uninstall(self) -> None:
        if self.path_hook is None:
            return
        if self.path_hook in sys.path_hooks:
            sys.path_hooks.remove(self.path_hook)
        self.path_hook = None
        sys.path_importer_cache.clear()


_loader = PackageWiringLoader()


def register_loader_containers(*cts: Container, packages: t.Sequence[str]) -> None:
    """Wire `cts` into modules of `packages` imported from now on."""
    _loader.register(*cts, packages=packages)


def unregister_loader_containers(*cts: Container) -> None:
    _loader.unregister(*cts)

"""
Provider Factory - Factory Pattern Implementation
Centralized factory for creating call hierarchy providers.
"""
from typing import Optional

from core.exceptions import ProviderConfigurationError
from core.hierarchy_providers import (
    CallHierarchyProvider,
    InMemoryCallHierarchyProvider,
    PythonAstCallHierarchyProvider,
)
from core.settings import Settings


class HierarchyProviderFactory:
    """
    Factory class for creating call hierarchy providers.
    New providers are added through `register_provider`.
    """

    # Registry of available providers
    _providers: dict[str, type[CallHierarchyProvider]] = {
        "python-ast": PythonAstCallHierarchyProvider,
        "memory": InMemoryCallHierarchyProvider,
    }

    @classmethod
    def register_provider(cls, name: str, provider_class: type[CallHierarchyProvider]) -> None:
        """
        Register a new call hierarchy provider.

        Args:
            name: Provider identifier
            provider_class: Class implementing CallHierarchyProvider
        """
        cls._providers[name.lower()] = provider_class

    @classmethod
    def create(cls, provider_name: str, **provider_kwargs) -> CallHierarchyProvider:
        """
        Create a provider by name.

        Args:
            provider_name: Name of the provider ("python-ast", "memory")
            **provider_kwargs: Provider-specific arguments

        Returns:
            Configured provider instance

        Raises:
            ProviderConfigurationError: If the provider is unknown or rejects its arguments

        Examples:
            >>> provider = HierarchyProviderFactory.create("python-ast", root="my_project")
        """
        provider_name = provider_name.lower()

        if provider_name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ProviderConfigurationError(
                f"Unknown provider: '{provider_name}'. "
                f"Available providers: {available}"
            )

        provider_class = cls._providers[provider_name]
        try:
            return provider_class(**provider_kwargs)
        except (TypeError, ValueError, OSError) as e:
            raise ProviderConfigurationError(f"Cannot create provider '{provider_name}': {e}") from e

    @classmethod
    def list_providers(cls) -> list[str]:
        """Get list of registered provider names."""
        return list(cls._providers.keys())


def create_python_provider(root: str, settings: Optional[Settings] = None) -> CallHierarchyProvider:
    """
    Create the `ast` based provider for a project directory.

    Args:
        root: Project directory
        settings: Supplies the self tokens (defaults to a fresh Settings)

    Returns:
        Configured PythonAstCallHierarchyProvider
    """
    settings = settings or Settings()
    self_tokens = list(dict.fromkeys(list(settings.self_tokens) + ["cls"]))
    return HierarchyProviderFactory.create("python-ast", root=root, self_tokens=self_tokens)

from typing import Any, Dict, Type

from .emitter import BaseProgressSource, EventSink, SimulatedProgressEmitter


class ProgressSourceFactory:
    """Factory class for creating progress source instances"""

    _sources: Dict[str, Type[BaseProgressSource]] = {
        'simulated': SimulatedProgressEmitter,
    }

    @classmethod
    def create_source(cls, source_name: str, sink: EventSink, **options: Any) -> BaseProgressSource:
        """Create a progress source instance

        Args:
            source_name: Name of the source (e.g., 'simulated')
            sink: Callable receiving ProgressTick / JobFinished messages
            **options: Keyword arguments forwarded to the source class

        Returns:
            BaseProgressSource: progress source instance

        Raises:
            ValueError: If source_name is not supported
        """
        if source_name not in cls._sources:
            raise ValueError(f"Unsupported progress source: {source_name}. "
                             f"Supported sources: {list(cls._sources.keys())}")
        return cls._sources[source_name](sink, **options)

    @classmethod
    def get_supported_sources(cls) -> list:
        """Get list of supported source names"""
        return list(cls._sources.keys())

    @classmethod
    def register_source(cls, name: str, source_class: Type[BaseProgressSource]):
        """Register a new progress source

        Args:
            name: Source name
            source_class: Class that inherits from BaseProgressSource
        """
        cls._sources[name] = source_class

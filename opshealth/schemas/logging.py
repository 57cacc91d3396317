from enum import Enum
from typing import Union


class LogLevel(Enum):
    """
    Log levels shared by loguru sinks and settings.

    Accepts integer values or case-insensitive names, so it can be set from
    the environment:

        ```python
        level = LogLevel.from_string("debug")  # LogLevel.DEBUG
        # OPSHEALTH_LOG_LEVEL=WARNING
        ```

    """

    TRACE = 5
    DEBUG = 10
    INFO = 20
    SUCCESS = 25
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def from_string(cls, value: Union[str, int, "LogLevel"]) -> "LogLevel":
        """
        Create LogLevel from a name, an integer value or an existing LogLevel.

        Raises:
            ValueError: If the value is not a valid log level

        """
        if isinstance(value, cls):
            return value

        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                valid_values = [level.value for level in cls]
                raise ValueError(
                    f"Invalid log level value: {value}. Valid values: {valid_values}"
                )

        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                valid_names = [level.name for level in cls]
                raise ValueError(
                    f"Invalid log level name: {value}. Valid names: {valid_names}"
                )

        raise ValueError(
            f"Invalid log level type: {type(value)}. Expected str, int, or LogLevel."
        )

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type, handler):
        """Validate from names or ints, serialize as the name."""
        from pydantic_core import core_schema

        return core_schema.no_info_plain_validator_function(
            cls.from_string, serialization=core_schema.to_string_ser_schema()
        )

    def __str__(self) -> str:
        return self.name

import re

LOCAL_REGION_PATTERN = re.compile(r"^local-[a-z]{2}-[a-z]+-\d+$")


def validate_region(region_name: str) -> bool:
    if not isinstance(region_name, str):
        return False
    return bool(LOCAL_REGION_PATTERN.match(region_name))


def is_local_region(region_name) -> bool:
    return isinstance(region_name, str) and region_name.startswith("local-")


class MockBase:
    _mock_domain = "pysqsmock.local"
    _supported_methods = []
    _declared_methods = []

    def __getattr__(self, name):
        if name in self._declared_methods and name not in self._supported_methods:
            raise NotImplementedError(
                f"The Mock for '{self.__class__.__name__}' declares '{name}', "
                f"but it's not implemented in local mock mode."
            )

        raise AttributeError(
            f"'{self.__class__.__name__}' does not implement '{name}'. "
            f"This operation is not supported in local mock mode."
        )

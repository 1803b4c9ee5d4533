class FangioError(Exception):
    """Base class for errors raised by the plan service."""


class PlanNotFoundError(FangioError):
    def __init__(self, plan_id: str):
        super().__init__(f"Plan {plan_id} not found")
        self.plan_id = plan_id


class ToolError(FangioError):
    """A step's tool could not produce a result."""


class UnknownToolError(ToolError):
    def __init__(self, name: str):
        super().__init__(f'Tool "{name}" not found in catalog')
        self.name = name


class ToolArgumentsError(ToolError):
    def __init__(self, name: str, detail: str):
        super().__init__(f'Invalid arguments for tool "{name}": {detail}')
        self.name = name
        self.detail = detail


class ToolExecutionError(ToolError):
    def __init__(self, message: str, stdout: str = "", stderr: str = "", exit_code: int = 1):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code

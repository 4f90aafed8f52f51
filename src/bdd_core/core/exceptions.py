class BDDCoreError(Exception):
    """Base exception for BDD Core"""
    pass


class ConfigurationError(BDDCoreError):
    """Configuration-related errors"""
    pass


class PatternCompileError(ConfigurationError):
    """Step pattern uses an unsupported placeholder or type"""
    pass


class NoMatchError(BDDCoreError):
    """No registered step definition matches the step text"""

    def __init__(self, step_text: str):
        self.step_text = step_text
        super().__init__(f"No step definition found for: {step_text}")


class FeatureCompileError(BDDCoreError):
    """Error compiling a feature into a suite"""
    pass


class ExecutionError(BDDCoreError):
    """Error during test execution"""
    pass


class HelperNotFoundError(ExecutionError):
    """No helper provides the requested action"""
    pass

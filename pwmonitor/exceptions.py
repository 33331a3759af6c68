class PwMonitorException(Exception):
    pass


class InvalidConfigurationParameter(PwMonitorException):
    pass


class LoginError(PwMonitorException):
    pass

"""
业务异常
均继承 ValueError，路由层按类型映射 HTTP 状态码：
AuthenticationError -> 401，NotFoundError -> 404，PermissionDeniedError -> 403，
VersionConflictError -> 409，其它 ValueError -> 400
"""


class NotFoundError(ValueError):
    """对象不存在"""


class PermissionDeniedError(ValueError):
    """当前操作员无权执行该操作"""


class VersionConflictError(ValueError):
    """状态版本号不一致（客户端数据已过期）"""


class AuthenticationError(ValueError):
    """登录失败（账号或密码错误、账号停用）"""

"""SkillLance -- 匿名校园互助请求服务"""

__version__ = "0.1.0"

"""SkillLance Core -- 领域模型、匿名身份与 SQLite 存储"""

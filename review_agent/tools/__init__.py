"""工具系统：定义、注册表、执行器与本地文件工具。"""

"""核心：启动器、run 协调器、任务作用域与错误分类。"""

"""
The connector package runs the external adb tool. Each adb sub-command is an external process
invoked with an argument list and inspected only via its exit code and captured output.
"""

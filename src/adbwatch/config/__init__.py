"""
A simple configuration helper built on top of ConfigObj that allows configuration files to be
layered - default / os-specific / user / explicit file, with a schema to validate the types of the config data.
The schema also carries the defaults, so every setting is present after loading.
"""

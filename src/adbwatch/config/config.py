import os
import platform

from configobj import ConfigObj, ConfigObjError, Section
from configobj.validate import Validator, VdtValueError

# The default extension for configuration files
config_extension = '.cfg'

# The name of the configuration shipped with the package
settings_name = 'adbwatch'

settings_directory = os.path.dirname(__file__)


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file in the given directory.
    """
    config_file = os.path.join(directory, name + config_extension)
    return config_file


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None) -> ConfigObj:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name.
    :param name:    The name of the base configuration
    :param subpart: The name of the specialization.
    :return: The ConfigObj for the configuration file.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    config = load_config_file_base(file, False)
    return config


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def user_config_file(name):
    return os.path.expanduser('~/' + name + config_extension)


def load_config(name, directory, extra_file=None):
    """
        Loads all the configuration files that relate to the given name.
        Configurations are loaded in this order, later files overriding earlier ones:
        - the default specialization
        - the platform specialization
        - the user override in the home directory
        - the explicitly given file, if any. This file must exist.
        The configurations are flattened into a single configuration, and then validated
        against a configuration specialization "schema", which also supplies defaults for missing values.
    :param directory: the location of the configuration files
    :param extra_file: an additional configuration file, typically named on the command line.
    :return: the validated ConfigObj
    """
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(user_config_file(name), must_exist=False)
    config = ConfigObj(configspec=config_filename(config_flavor(name, 'schema'), directory))
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    if extra_file:
        config.merge(load_config_file_base(extra_file, must_exist=True))

    validator = Validator()
    result = config.validate(validator, preserve_errors=True)
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def apply_conf(conf: Section, target):
    """
    Applies the attributes contained in a configuration section to a target object.
    It does this by iterating over the items in the configuration and setting any attributes with the same name.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


def load_settings(config_file=None, directory=settings_directory):
    """
    Loads the adbwatch settings.
    :param config_file: an optional file named by the user that overrides all others.
    """
    try:
        return load_config(settings_name, directory, config_file)
    except (IOError, VdtValueError) as e:
        raise ConfigObjError(str(e)) from e

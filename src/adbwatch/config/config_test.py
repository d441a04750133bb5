import os
import tempfile
import unittest
from unittest.mock import Mock, patch

from configobj import ConfigObj, ConfigObjError
from hamcrest import assert_that, is_, calling, raises

from adbwatch.config.config import config_filename, config_flavor, load_config_file_base, load_settings, \
    map_os_name, apply_conf, settings_directory


class ConfigTestCase(unittest.TestCase):

    def setUp(self):
        # keep the user's own ~/adbwatch.cfg out of the tests
        patcher = patch('adbwatch.config.config.user_config_file', return_value='/nonexistent/adbwatch.cfg')
        patcher.start()
        self.addCleanup(patcher.stop)
        self.dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.dir.cleanup)

    def write(self, name, text):
        path = os.path.join(self.dir.name, name)
        with open(path, 'w') as f:
            f.write(text)
        return path

    def test_config_file_not_found(self):
        assert_that(calling(load_config_file_base).with_args('blah'), raises(IOError))

    def test_config_file_invalid_syntax(self):
        path = self.write('broken.cfg', '[[nested]\n')
        assert_that(calling(load_config_file_base).with_args(path), raises(ConfigObjError, "at .*broken.cfg"))

    def test_schema_ships_with_package(self):
        file = config_filename(config_flavor('adbwatch', 'schema'), settings_directory)
        assert_that(os.path.exists(file), is_(True), "expected config path %s to exist" % file)

    def test_defaults(self):
        settings = load_settings()
        assert_that(settings['timing']['debounce_window'], is_(5.0))
        assert_that(settings['timing']['cooldown_threshold'], is_(5))
        assert_that(settings['timing']['cooldown_period'], is_(300.0))
        assert_that(settings['timing']['stale_after'], is_(600.0))
        assert_that(settings['timing']['sweep_interval'], is_(600.0))
        assert_that(settings['connect']['max_retries'], is_(3))
        assert_that(settings['connect']['backoff_cap'], is_(8.0))
        assert_that(settings['mirror']['max_retries'], is_(2))
        assert_that(settings['mirror']['retry_delay'], is_(2.0))
        assert_that(settings['mirror']['max_size'], is_(1024))
        assert_that(settings['discovery']['connect_service'], is_('adb-tls-connect'))
        assert_that(settings['discovery']['pairing_service'], is_('adb-tls-pairing'))

    def test_explicit_file_overrides(self):
        path = self.write('mine.cfg', '[mirror]\nmax_size = 800\n[timing]\ncooldown_period = 60\n')
        settings = load_settings(path)
        assert_that(settings['mirror']['max_size'], is_(800))
        assert_that(settings['timing']['cooldown_period'], is_(60.0))
        assert_that(settings['timing']['debounce_window'], is_(5.0))

    def test_explicit_file_must_exist(self):
        assert_that(calling(load_settings).with_args(os.path.join(self.dir.name, 'missing.cfg')),
                    raises(ConfigObjError))

    def test_invalid_value_fails_validation(self):
        path = self.write('bad.cfg', '[mirror]\nmax_size = lots\n')
        assert_that(calling(load_settings).with_args(path), raises(ConfigObjError, "failed validation"))

    def test_map_os_name(self):
        assert_that(map_os_name('Windows'), is_('windows'))
        assert_that(map_os_name('Darwin'), is_('osx'))
        assert_that(map_os_name('Linux'), is_('linux'))

    def test_apply_conf_sets_known_attributes(self):
        target = Mock(spec=['retries'])
        apply_conf({'retries': 4, 'unknown': 1}, target)
        assert_that(target.retries, is_(4))
        assert_that(hasattr(target, 'unknown'), is_(False))


if __name__ == '__main__':  # pragma no cover
    unittest.main()

from setuptools import setup


setup(
    name='adbwatch',
    version='0.1.0',
    description='Discovers Android devices advertising wireless debugging, connects them over adb '
                'and mirrors them with scrcpy.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['adbwatch', 'adbwatch.config', 'adbwatch.connector', 'adbwatch.discovery',
              'adbwatch.support', 'adbwatch.workflow'],
    package_data={'adbwatch.config': ['*.cfg']},
    python_requires='>=3.8',
    install_requires=[
        'configobj>=5.0.8',
        'zeroconf>=0.38',
    ],
    extras_require={
        'test': ['PyHamcrest', 'pytest>=7'],
    },
    entry_points={
        'console_scripts': ['adbwatch = adbwatch.cli:main'],
    },
    zip_safe=False,
)

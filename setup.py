from setuptools import setup

setup (name = 'zstags',
       version = '20261019',
       description = 'Tag files with free text labels and select files by their tags.',
       package_dir = {'': 'lib/python'},
       packages = ['zstags'],
       python_requires = '>=3.8',
       install_requires = [
           'cs.cmdutils',
           'cs.context',
           'cs.deco',
           'cs.logutils',
           'cs.pfx',
           'cs.resources',
           'cs.threads',
           'cs.upd',
           'icontract',
           'sqlalchemy>=1.4',
           'typeguard',
       ],
       extras_require = {
           'test': ['pytest'],
       },
       entry_points = {
           'console_scripts': ['zstags = zstags.__main__:main'],
       },
       classifiers = [
           "Programming Language :: Python",
           "Programming Language :: Python :: 3",
           "Topic :: System :: Filesystems",
       ])

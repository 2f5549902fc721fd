#
# unbook distribution
#

from setuptools import setup

VERSION = '0.9.1'

setup (
    name = 'unbook',
    version = VERSION,

    packages = [
        'unbook',
        'unbook.parsers',
        'unbook.writers',
    ],

    scripts = [
        'scripts/unbook',
    ],

    install_requires = [
        'pillow>=8.3.2',
        'chardet',
        'cssutils',
        'lxml',
        'beautifulsoup4',
        'html5lib',
        'libgutenberg>=0.11',
    ],

    extras_require = {
        'test': ['pytest'],
    },

    package_data = {
        'unbook.writers': ['text-fragments-polyfill.js'],
    },

    python_requires = '>=3.9',

    # metadata for upload to PyPI

    author = "The unbook contributors",
    description = "Convert ebooks into self-contained html files that read well in any browser.",
    long_description = open ('README.md', encoding='utf-8').read (),
    long_description_content_type = 'text/markdown',
    license = "GPL v3",
    keywords = "ebook epub htmlz html calibre conversion reading fonts",

    classifiers = [
        "Topic :: Text Processing",
        "License :: OSI Approved :: GNU General Public License (GPL)",
        "Environment :: Console",
        "Operating System :: OS Independent",
        "Intended Audience :: End Users/Desktop",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
    ],

    platforms = 'OS-independent'
)

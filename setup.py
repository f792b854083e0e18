from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fp:
    long_description = fp.read()

setup(
    name="gigalaunch",
    version="0.69.0",
    description="GigaLaunch installs and starts the game from Mojang's official metadata, "
                "with an API to evaluate version's rules and build its launch command.",
    author="GigaLaunch contributors",
    packages=["gigalaunch", "gigalaunch.cli"],
    python_requires=">=3.8",
    install_requires=["certifi"],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["gigalaunch = gigalaunch.cli:main"]},
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="GPL-3.0",
)

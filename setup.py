from setuptools import setup, find_packages

with open("requirements.txt") as f:
    install_requires = f.read().strip().split("\n")

setup(
    name="church_admin",
    version="0.1.0",
    description="Church Administration and Member Contribution Tracking",
    author="Parish Systems",
    author_email="admin@parishsystems.org",
    packages=find_packages(),
    zip_safe=False,
    include_package_data=True,
    install_requires=install_requires,
)

#!/usr/bin/env python3

from setuptools import setup, find_packages
import os

directory = os.path.dirname(os.path.realpath(__file__))


if __name__ == "__main__":
    setup(
        name="colgen",
        packages=find_packages(include=["colgen", "colgen.*"]),
        python_requires='>3.10.0',
        version="0.1.0",
        license="MIT",
        description="Convex collider generation from sprite occupancy masks",
        author="mirmik",
        author_email="mirmikns@yandex.ru",
        url="https://github.com/mirmik/colgen",
        long_description=open(os.path.join(
            directory, "README.md"), "r", encoding="utf8").read(),
        long_description_content_type="text/markdown",
        keywords=["collider", "physics", "geometry", "sprite"],
        classifiers=[],
        include_package_data=True,
        install_requires=[
            "numpy",
            "scipy",
            "Pillow>=9.0",
        ],
        extras_require={
            "test": ["pytest"],
        },
        zip_safe=False,
    )

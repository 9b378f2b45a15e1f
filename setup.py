from setuptools import setup, find_packages
import re


# 获取项目版本信息并规范化版本号格式
def get_version():
    try:
        with open('VERSION', 'r') as f:
            version = f.read().strip()

        # 移除v前缀
        version = re.sub(r'^v', '', version)

        # 将-ci.转换为.post
        version = re.sub(r'-ci\.(\d+)', r'.post\1', version)

        # 将git commit hash转换为数字（取前8位并转换为整数）
        match = re.search(r'-([a-f0-9]+)$', version)
        if match:
            commit_hash = match.group(1).ljust(8, '0')
            version = re.sub(r'-([a-f0-9]+)$', f'.dev{int(commit_hash[:8], 16)}', version)

        # 验证版本号格式是否符合PEP 440
        if re.match(r'^\d+\.\d+\.\d+(\.post\d+)?(\.dev\d+)?$', version):
            return version
        print(f"Warning: Version format '{version}' is not standard, using default")
        return '1.0.0'
    except OSError:
        return '1.0.0'


# 获取项目依赖
def get_requirements():
    try:
        with open('requirements.txt', 'r') as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    except OSError:
        return []


setup(
    name='MFW-HotUpdate',
    version=get_version(),
    description='MFW-ChainFlow Assistant 资源热更新同步器',
    license='GPL-3.0-or-later',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.11',
    install_requires=get_requirements(),
    extras_require={'test': ['pytest']},
)

"""Tests for role classification."""

from pathlib import Path

import pytest

from legacylens import roles as roles_module
from legacylens.errors import SourceReadFailed
from legacylens.models import Role
from legacylens.roles import classify, classify_sources, classify_text


@pytest.mark.parametrize("text,role", [
    ("@RestController\npublic class A {}", Role.ENTRY_POINT),
    ("@Controller\npublic class A {}", Role.ENTRY_POINT),
    ('@WebServlet("/x")\npublic class A {}', Role.ENTRY_POINT),
    ('@Path("/orders")\npublic class A {}', Role.ENTRY_POINT),
    ("@Service\npublic class A {}", Role.COMPONENT),
    ("@Stateless\npublic class A {}", Role.COMPONENT),
    ("@Repository\npublic class A {}", Role.DATA_ACCESS),
    ("public class A extends HttpServlet {}", Role.ENTRY_POINT),
    ("public class A implements Serializable, SessionBean {}", Role.COMPONENT),
    ("public interface A extends JpaRepository<User, Long> {}", Role.DATA_ACCESS),
    ("public class A { @PersistenceContext private EntityManager em; }", Role.DATA_ACCESS),
])
def test_annotation_and_marker_rules(text, role):
    assert classify_text(Path("src/pkg/A.java"), text) is role


def test_annotation_wins_over_path():
    path = Path("/p/src/com/acme/repository/OrderFacade.java")
    assert classify_text(path, "@Service public class OrderFacade {}") is Role.COMPONENT


def test_path_keyword_relative_to_source_root():
    root = Path("/work/service-api/src")
    assert classify_text(root / "com/acme/Orders.java", "class Orders {}", root) is Role.UNCLASSIFIED
    assert classify_text(root / "com/acme/dao/Orders.java", "class Orders {}", root) is Role.DATA_ACCESS
    assert classify_text(root / "com/acme/controller/Orders.java", "class Orders {}", root) is Role.ENTRY_POINT


@pytest.mark.parametrize("name,role", [
    ("OrderResource", Role.ENTRY_POINT),
    ("LoginAction", Role.ENTRY_POINT),
    ("BillingManager", Role.COMPONENT),
    ("AccountFacade", Role.COMPONENT),
    ("OrderMapper", Role.DATA_ACCESS),
    ("CustomerDAO", Role.DATA_ACCESS),
    ("Money", Role.UNCLASSIFIED),
])
def test_file_name_suffix(name, role):
    root = Path("/src")
    assert classify_text(root / "x" / f"{name}.java", f"class {name} {{}}", root) is role


def test_classify_without_type_declaration():
    assert classify(Path("package-info.java"), "package com.acme;") is None


def test_classify_sample_project(sample_project_path: Path):
    source_root = sample_project_path / "src" / "main" / "java"
    roles, skipped = classify_sources(source_root)

    assert skipped == 0
    assert roles.names(Role.ENTRY_POINT) == ["UserController"]
    assert sorted(roles.names(Role.COMPONENT)) == ["UserService", "UserServiceImpl"]
    assert roles.names(Role.DATA_ACCESS) == ["UserRepository"]
    assert sorted(roles.names(Role.UNCLASSIFIED)) == ["CreateUserRequest", "Slugs", "User"]


def test_duplicate_class_names_keep_first(temp_dir: Path, write_tree):
    write_tree(temp_dir, {
        "a/controller/Orders.java": "class Orders {}",
        "b/service/Orders.java": "class Orders {}",
    })
    roles, _ = classify_sources(temp_dir)

    assert len(roles) == 1
    assert roles.role_of("Orders") is Role.ENTRY_POINT


def test_unreadable_file_is_skipped_and_counted(sample_project_path: Path, monkeypatch):
    real = roles_module.read_source

    def read_source(path):
        if path.name == "UserRepository.java":
            raise SourceReadFailed(f"Cannot read {path}")
        return real(path)

    monkeypatch.setattr(roles_module, "read_source", read_source)
    roles, skipped = classify_sources(sample_project_path / "src" / "main" / "java")

    assert skipped == 1
    assert roles.get("UserRepository") is None
    assert roles.names(Role.ENTRY_POINT) == ["UserController"]


def test_packages_named_like_build_output(temp_dir: Path, write_tree):
    write_tree(temp_dir, {
        "com/acme/build/controller/BuildController.java": "@RestController public class BuildController {}",
        "com/acme/build/service/BuildService.java": "@Service public class BuildService {}",
    })
    roles, _ = classify_sources(temp_dir)

    assert roles.names(Role.ENTRY_POINT) == ["BuildController"]
    assert roles.names(Role.COMPONENT) == ["BuildService"]

import pytest

from app.schemas.contact import ContactRead
from app.schemas.workflow import ResolvedTemplate, Template
from app.services.recipients import (
    IncompleteBindingError,
    RecipientBindings,
    UnknownRoleError,
    flatten_recipients,
    group_recipients,
    is_sender_role,
    role_key,
)


def _resolved(position: int, template_id: str, title: str, users: list[dict]) -> ResolvedTemplate:
    template = Template.model_validate({"_id": template_id, "title": title, "document_users": users})
    return ResolvedTemplate(position=position, template_id=template_id, reference={"template_id": template_id}, template=template)


@pytest.fixture()
def scenario_templates() -> list[ResolvedTemplate]:
    return [
        _resolved(
            0,
            "tpl-1",
            "Purchase Agreement",
            [
                {"role": "Buyer", "contact_type_name": "Buyer", "user_type": "SIGNER"},
                {"role": "sender"},
            ],
        ),
        _resolved(
            1,
            "tpl-2",
            "Disclosure",
            [
                {"role": "Buyer", "contact_type_name": "Buyer", "user_type": "VIEWER"},
                {"role": "Witness", "contact_type_name": "Witness"},
            ],
        ),
    ]


def _membership(grouped) -> dict[str, set]:
    return {item.role_key: {entry.template_id for entry in item.templates} for item in grouped}


def test_role_key_precedence() -> None:
    assert role_key({"contact_type_name": "Buyer", "role": "Other", "contact_type": "ct"}) == "buyer"
    assert role_key({"role": " Seller "}) == "seller"
    assert role_key({"contact_type": "CT-9"}) == "ct-9"
    assert role_key({}) == ""


def test_is_sender_role_variants() -> None:
    assert is_sender_role({"type": "SENDER", "role": "Agent"})
    assert is_sender_role({"role": "Sender"})
    assert is_sender_role({"contact_type_name": "sender"})
    assert not is_sender_role({"role": "Buyer", "type": "RECEIVER"})


def test_flatten_preserves_order_and_tags_templates(scenario_templates) -> None:
    flat = flatten_recipients(scenario_templates)

    assert [(item.source_template_id, item.role) for item in flat] == [
        ("tpl-1", "Buyer"),
        ("tpl-1", "sender"),
        ("tpl-2", "Buyer"),
        ("tpl-2", "Witness"),
    ]
    assert flat[0].source_template_name == "Purchase Agreement"
    assert len({item.ui_id for item in flat}) == 4
    assert flat[0].model_dump(by_alias=True)["_templateId"] == "tpl-1"


def test_flatten_skips_templates_without_recipients() -> None:
    assert flatten_recipients([_resolved(0, "tpl-empty", "Empty", [])]) == []


def test_grouping_merges_roles_across_templates(scenario_templates) -> None:
    grouped = group_recipients(flatten_recipients(scenario_templates))

    assert [item.role_key for item in grouped] == ["buyer", "sender", "witness"]
    assert _membership(grouped) == {"buyer": {"tpl-1", "tpl-2"}, "sender": {"tpl-1"}, "witness": {"tpl-2"}}

    buyer = grouped[0]
    assert buyer.role == "Buyer"
    assert buyer.involved_templates == "Purchase Agreement, Disclosure"
    assert buyer.user_type == "SIGNER"
    assert [entry.user_type for entry in buyer.templates] == ["SIGNER", "VIEWER"]
    assert grouped[1].is_sender
    assert buyer.model_dump(by_alias=True)["_involvedTemplates"] == "Purchase Agreement, Disclosure"


def test_grouping_is_invariant_under_template_permutation(scenario_templates) -> None:
    forward = group_recipients(flatten_recipients(scenario_templates))
    backward = group_recipients(flatten_recipients(list(reversed(scenario_templates))))
    again = group_recipients(flatten_recipients(scenario_templates))

    assert _membership(forward) == _membership(backward) == _membership(again)
    assert [item.role_key for item in forward] == [item.role_key for item in again]


def test_grouping_ignores_repeated_role_in_same_template() -> None:
    template = _resolved(0, "tpl-1", "Copy", [{"role": "Buyer"}, {"role": "buyer"}])
    grouped = group_recipients(flatten_recipients([template]))

    assert len(grouped) == 1
    assert len(grouped[0].templates) == 1
    assert grouped[0].involved_templates == "Copy"


def test_involved_templates_match_whole_names() -> None:
    grouped = group_recipients(
        flatten_recipients(
            [
                _resolved(0, "tpl-1", "i-9 - Copy", [{"role": "Employee"}]),
                _resolved(1, "tpl-2", "i-9", [{"role": "Employee"}]),
            ]
        )
    )
    assert grouped[0].involved_templates == "i-9 - Copy, i-9"


def test_sender_never_merges_with_receiver_of_same_key() -> None:
    grouped = group_recipients(
        flatten_recipients(
            [
                _resolved(0, "tpl-1", "A", [{"role": "Agent", "type": "SENDER"}]),
                _resolved(1, "tpl-2", "B", [{"role": "Agent", "type": "RECEIVER"}]),
            ]
        )
    )
    assert [(item.role_key, item.is_sender) for item in grouped] == [("agent", True), ("agent", False)]


def test_bindings_readiness(scenario_templates) -> None:
    bindings = RecipientBindings(group_recipients(flatten_recipients(scenario_templates)))

    assert not bindings.is_ready()
    assert bindings.incomplete_roles() == ["Buyer", "Witness"]

    buyer = ContactRead.model_validate(
        {"_id": "c-1", "email": "buyer@example.com", "first_name": "Ana", "last_name": "Souza", "phone": 5550101}
    )
    bound = bindings.bind("BUYER", "c-1", buyer)
    assert bound.selected_contact_id == "c-1"
    assert bound.email == "buyer@example.com"
    assert bound.phone == "5550101"
    assert bindings.incomplete_roles() == ["Witness"]

    with pytest.raises(IncompleteBindingError) as excinfo:
        bindings.require_ready()
    assert excinfo.value.roles == ["Witness"]

    bindings.bind("witness", "c-2", {"email": "w@example.com", "first_name": "Bruno"})
    assert bindings.is_ready()


def test_rebinding_overwrites_contact_fields(scenario_templates) -> None:
    bindings = RecipientBindings(group_recipients(flatten_recipients(scenario_templates)))
    bindings.bind("buyer", "c-1", {"email": "first@example.com", "title": "Dr"})
    bindings.bind("buyer", "c-2", {"email": "second@example.com"})

    buyer = bindings.find("buyer")
    assert buyer.selected_contact_id == "c-2"
    assert buyer.email == "second@example.com"
    assert buyer.title is None


def test_binding_without_email_is_not_ready(scenario_templates) -> None:
    bindings = RecipientBindings(group_recipients(flatten_recipients(scenario_templates)))
    bindings.bind("buyer", "c-1", {"email": "b@example.com"})
    bindings.bind("witness", "c-2", {"email": "  "})
    assert bindings.incomplete_roles() == ["Witness"]


def test_same_contact_may_fill_several_roles(scenario_templates) -> None:
    bindings = RecipientBindings(group_recipients(flatten_recipients(scenario_templates)))
    contact = {"email": "same@example.com"}
    bindings.bind("buyer", "c-1", contact)
    bindings.bind("witness", "c-1", contact)
    assert bindings.is_ready()


def test_sender_cannot_be_bound_and_never_blocks(scenario_templates) -> None:
    bindings = RecipientBindings(group_recipients(flatten_recipients(scenario_templates)))
    with pytest.raises(UnknownRoleError):
        bindings.bind("sender", "c-1", {"email": "x@example.com"})
    assert "sender" not in [role.lower() for role in bindings.incomplete_roles()]


def test_empty_recipient_list_is_ready() -> None:
    assert RecipientBindings([]).is_ready()

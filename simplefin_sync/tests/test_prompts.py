from simplefin_sync.prompts import TerminalAccountCreator
from fakes import make_account


def scripted(*answers):
    replies = iter(answers)
    printed = []

    def fake_input(prompt):
        printed.append(prompt)
        try:
            return next(replies)
        except StopIteration:
            raise EOFError()

    return TerminalAccountCreator(input_fn=fake_input, output_fn=printed.append), printed


class TestTerminalAccountCreator:
    def test_default_name_and_subtype(self):
        creator, _ = scripted("", "1", "2")
        choice = creator.classify(make_account("ACT-1", name="Checking", domain="chase.com"))
        assert choice.name == "Checking chase.com"
        assert choice.accountable_type == "Depository"
        assert choice.subtype == "savings"

    def test_type_without_subtypes_skips_second_menu(self):
        creator, printed = scripted("My Car", "5")
        choice = creator.classify(make_account("ACT-1"))
        assert (choice.name, choice.accountable_type, choice.subtype) == ("My Car", "Vehicle", "")
        assert not any("SubType" in line for line in printed)

    def test_invalid_selection_reprompts(self):
        creator, printed = scripted("Card", "0", "abc", "7", "1")
        choice = creator.classify(make_account("ACT-1"))
        assert choice.accountable_type == "CreditCard"
        assert choice.subtype == "credit_card"
        assert printed.count("Invalid selection. Please try again.") == 2

    def test_q_cancels(self):
        creator, _ = scripted("Card", "q")
        assert creator.classify(make_account("ACT-1")) is None

    def test_closed_stdin_cancels(self):
        creator, _ = scripted()
        assert creator.classify(make_account("ACT-1")) is None

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import request
from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, DecimalField, IntegerField, DateField
from wtforms.validators import DataRequired, Length, Optional, Regexp, StopValidation, ValidationError as FieldError

from errors import ValidationError

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class MoneyField(DecimalField):
    """Decimal field that keeps JSON numbers exact and rounds to cents."""

    def process_formdata(self, valuelist):
        if not valuelist or valuelist[0] in (None, ""):
            return
        try:
            value = Decimal(str(valuelist[0]))
            if not value.is_finite():
                raise ValueError(valuelist[0])
            self.data = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except (InvalidOperation, ValueError):
            self.data = None
            raise ValueError(self.gettext("Not a valid decimal value."))


class StrictStringMixin:
    """JSON bodies can carry numbers, lists or objects where text is expected."""

    def process_formdata(self, valuelist):
        if valuelist and valuelist[0] is not None and not isinstance(valuelist[0], str):
            self.data = None
            raise ValueError(self.gettext("Not a valid string."))
        super().process_formdata(valuelist)


class TextField(StrictStringMixin, StringField):
    pass


class SecretField(StrictStringMixin, PasswordField):
    pass


class DayField(DateField):

    def process_formdata(self, valuelist):
        if not valuelist or valuelist[0] is None:
            return
        if not isinstance(valuelist[0], str):
            self.data = None
            raise ValueError(self.gettext("Not a valid date value."))
        super().process_formdata(valuelist)


class IdField(IntegerField):

    def process_formdata(self, valuelist):
        if not valuelist or valuelist[0] is None:
            return
        if isinstance(valuelist[0], bool) or not isinstance(valuelist[0], (int, str)):
            self.data = None
            raise ValueError(self.gettext("Not a valid integer value."))
        super().process_formdata(valuelist)


def present(form, field):
    if field.data is None:
        raise StopValidation("This field is required.")


def not_blank(form, field):
    if field.raw_data and isinstance(field.data, str) and not field.data.strip():
        raise StopValidation("This field cannot be blank.")


def positive(form, field):
    if field.data is not None and field.data <= 0:
        raise FieldError("Amount must be greater than zero.")


class ApiForm(FlaskForm):
    """Form fed from the JSON request body."""

    class Meta:
        csrf = False

    def __init__(self, *args, **kwargs):
        if request.is_json and not isinstance(request.get_json(silent=True), dict):
            raise ValidationError("Request body must be a JSON object.", code="invalid_body")
        super().__init__(*args, **kwargs)

    def patch(self):
        """Validated values for only the fields the client actually sent.

        An empty string clears an optional column.
        """
        sent = request.get_json(silent=True) or {}
        values = {}
        for name, field in self._fields.items():
            if name not in sent or field.data is None:
                continue
            values[name] = None if field.data == "" else field.data
        return values

    def validated(self):
        if not self.validate():
            raise ValidationError("Please correct the errors in the request.", details=self.errors)
        return self


class RegisterForm(ApiForm):
    username = TextField("Username", validators=[DataRequired(), Length(min=3, max=50)])
    email = TextField("Email", validators=[DataRequired(), Length(max=100), Regexp(EMAIL_PATTERN, message="Invalid email address.")])
    password = SecretField("Password", validators=[DataRequired(), Length(min=6)])
    first_name = TextField("First name", validators=[Optional(), Length(max=50)])
    last_name = TextField("Last name", validators=[Optional(), Length(max=50)])


class LoginForm(ApiForm):
    email = TextField("Email", validators=[DataRequired()])
    password = SecretField("Password", validators=[DataRequired()])


class ProfileForm(ApiForm):
    username = TextField("Username", validators=[not_blank, Optional(), Length(min=3, max=50)])
    email = TextField("Email", validators=[not_blank, Optional(), Length(max=100), Regexp(EMAIL_PATTERN, message="Invalid email address.")])
    first_name = TextField("First name", validators=[Optional(), Length(max=50)])
    last_name = TextField("Last name", validators=[Optional(), Length(max=50)])


class CategoryForm(ApiForm):
    name = TextField("Name", validators=[DataRequired(), Length(max=50)])
    color = TextField("Color", validators=[Optional(), Regexp(COLOR_PATTERN, message="Color must look like #RRGGBB.")])
    icon = TextField("Icon", validators=[Optional(), Length(max=50)])


class CategoryUpdateForm(CategoryForm):
    name = TextField("Name", validators=[not_blank, Optional(), Length(max=50)])


class ExpenseForm(ApiForm):
    amount = MoneyField("Amount", validators=[present, positive])
    description = TextField("Description", validators=[DataRequired(), Length(max=1000)])
    date = DayField("Date", validators=[DataRequired()])
    category_id = IdField("Category", validators=[DataRequired()])


class ExpenseUpdateForm(ExpenseForm):
    amount = MoneyField("Amount", validators=[Optional(), positive])
    description = TextField("Description", validators=[not_blank, Optional(), Length(max=1000)])
    date = DayField("Date", validators=[Optional()])
    category_id = IdField("Category", validators=[Optional()])


class BudgetForm(ApiForm):
    amount = MoneyField("Budget Amount", validators=[present, positive])
    category_id = IdField("Category", validators=[DataRequired()])
    start_date = DayField("Start date", validators=[DataRequired()])
    end_date = DayField("End date", validators=[DataRequired()])


class BudgetUpdateForm(BudgetForm):
    amount = MoneyField("Budget Amount", validators=[Optional(), positive])
    category_id = IdField("Category", validators=[Optional()])
    start_date = DayField("Start date", validators=[Optional()])
    end_date = DayField("End date", validators=[Optional()])

"""Per-user data access for categories, expenses, budgets and users.

Every repository is built around an explicit SQLAlchemy session and, for the
owned entities, the id of the requesting user. Rows that belong to somebody
else are reported exactly like missing ones.
"""
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from models import DEFAULT_CATEGORIES, Budget, Category, Expense, User

logger = logging.getLogger(__name__)


def commit(session):
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        # Integrity errors are expected and turned into conflicts by callers
        if not isinstance(exc, IntegrityError):
            logger.exception("Commit failed")
        raise


class Repository:
    """get/list/create/update/delete for one model owned by one user."""
    model = None
    label = None
    # Columns a patch may touch; anything else is rejected
    patchable = ()

    def __init__(self, session, user_id):
        self.session = session
        self.user_id = user_id

    def _query(self):
        return self.session.query(self.model).filter(self.model.user_id == self.user_id)

    def get(self, obj_id):
        obj = self._query().filter(self.model.id == obj_id).first()
        if obj is None:
            logger.warning("%s %s not found for user %s", self.label, obj_id, self.user_id)
            raise NotFoundError(f"{self.label.capitalize()} not found", code=f"{self.label}_not_found")
        return obj

    def list(self):
        return self._query().order_by(self.model.id).all()

    def create(self, **fields):
        obj = self.model(user_id=self.user_id, **fields)
        self.session.add(obj)
        commit(self.session)
        logger.info("Created %s %s for user %s", self.label, obj.id, self.user_id)
        return obj

    def update(self, obj_id, patch):
        unknown = set(patch) - set(self.patchable)
        if unknown:
            raise ValueError(f"Fields not patchable on {self.label}: {sorted(unknown)}")
        obj = self.get(obj_id)
        if not patch:
            return obj
        for name, value in patch.items():
            setattr(obj, name, value)
        commit(self.session)
        return obj

    def delete(self, obj_id):
        obj = self.get(obj_id)
        self.session.delete(obj)
        commit(self.session)
        logger.info("Deleted %s %s for user %s", self.label, obj_id, self.user_id)

    def _require_category(self, category_id):
        exists = self.session.query(Category.id).filter(
            Category.id == category_id, Category.user_id == self.user_id
        ).first()
        if exists is None:
            raise NotFoundError("Category not found", code="category_not_found")


class CategoryRepository(Repository):
    model = Category
    label = "category"
    patchable = ("name", "color", "icon")

    def list(self):
        return self._query().order_by(Category.name.asc(), Category.id).all()

    def delete(self, obj_id):
        category = self.get(obj_id)
        in_use = self.session.query(func.count(Expense.id)).filter(
            Expense.category_id == category.id, Expense.user_id == self.user_id
        ).scalar()
        if in_use:
            logger.warning("Refusing to delete category %s: %d expenses", obj_id, in_use)
            raise ConflictError("Cannot delete category with associated expenses",
                                code="category_has_expenses")
        self.session.delete(category)
        commit(self.session)
        logger.info("Deleted category %s for user %s", obj_id, self.user_id)


class ExpenseRepository(Repository):
    model = Expense
    label = "expense"
    patchable = ("amount", "description", "date", "category_id")

    def filtered(self, start_date=None, end_date=None, category_id=None):
        query = self._query()
        if start_date:
            query = query.filter(Expense.date >= start_date)
        if end_date:
            query = query.filter(Expense.date <= end_date)
        if category_id:
            query = query.filter(Expense.category_id == category_id)
        return query.order_by(Expense.date.desc(), Expense.id.desc())

    def list(self, start_date=None, end_date=None, category_id=None, page=1, limit=50):
        """Return (expenses on the requested page, total matching expenses)."""
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive", code="invalid_pagination")
        query = self.filtered(start_date, end_date, category_id)
        total = query.order_by(None).count()
        expenses = query.limit(limit).offset((page - 1) * limit).all()
        return expenses, total

    def create(self, **fields):
        self._require_category(fields.get("category_id"))
        return super().create(**fields)

    def update(self, obj_id, patch):
        if "category_id" in patch:
            self._require_category(patch["category_id"])
        return super().update(obj_id, patch)


class BudgetRepository(Repository):
    model = Budget
    label = "budget"
    patchable = ("amount", "category_id", "start_date", "end_date")

    @staticmethod
    def _check_range(start_date, end_date):
        if end_date <= start_date:
            raise ValidationError("End date must be after start date", code="invalid_date_range")

    def list(self):
        return self._query().order_by(Budget.end_date.desc(), Budget.id).all()

    def create(self, **fields):
        self._check_range(fields["start_date"], fields["end_date"])
        self._require_category(fields["category_id"])
        return super().create(**fields)

    def update(self, obj_id, patch):
        budget = self.get(obj_id)
        self._check_range(patch.get("start_date", budget.start_date),
                          patch.get("end_date", budget.end_date))
        if "category_id" in patch:
            self._require_category(patch["category_id"])
        return super().update(obj_id, patch)


class UserRepository:
    patchable = ("username", "email", "first_name", "last_name")

    def __init__(self, session):
        self.session = session

    def get(self, user_id):
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", code="user_not_found")
        return user

    def _check_unique(self, username=None, email=None, exclude_id=None):
        if username is not None:
            query = self.session.query(User.id).filter(User.username == username)
            if exclude_id is not None:
                query = query.filter(User.id != exclude_id)
            if query.first():
                raise ConflictError("Username already exists", code="username_in_use")
        if email is not None:
            query = self.session.query(User.id).filter(User.email == email)
            if exclude_id is not None:
                query = query.filter(User.id != exclude_id)
            if query.first():
                raise ConflictError("User with this email already exists", code="email_in_use")

    def register(self, username, email, password, first_name=None, last_name=None):
        self._check_unique(username=username, email=email)
        user = User(username=username, email=email, password_hash=generate_password_hash(password),
                    first_name=first_name, last_name=last_name)
        self.session.add(user)
        for name, color, icon in DEFAULT_CATEGORIES:
            self.session.add(Category(name=name, color=color, icon=icon, user=user))
        try:
            commit(self.session)
        except IntegrityError:
            raise ConflictError("Username or email already exists", code="user_exists")
        logger.info("Registered user %s (%s)", user.id, user.username)
        return user

    def authenticate(self, email, password):
        user = self.session.query(User).filter(User.email == email).first()
        if user is None or not check_password_hash(user.password_hash, password):
            logger.warning("Failed login for %s", email)
            raise AuthenticationError("Invalid email or password", code="invalid_credentials")
        return user

    def update(self, user_id, patch):
        unknown = set(patch) - set(self.patchable)
        if unknown:
            raise ValueError(f"Fields not patchable on user: {sorted(unknown)}")
        user = self.get(user_id)
        self._check_unique(username=patch.get("username"), email=patch.get("email"), exclude_id=user.id)
        for name, value in patch.items():
            setattr(user, name, value)
        try:
            commit(self.session)
        except IntegrityError:
            raise ConflictError("Username or email already exists", code="user_exists")
        return user

from typing import Optional
import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKeyConstraint, Index, Integer, PrimaryKeyConstraint, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from app.libs.formats.datetime import now


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = 'users'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='users_pkey'),
        UniqueConstraint('email', name='users_email_key'),
        UniqueConstraint('google_id', name='users_google_id_key'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String, nullable=False)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String)
    title: Mapped[Optional[str]] = mapped_column(String)
    role: Mapped[str] = mapped_column(String, nullable=False, default='TRAINEE')
    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_verified_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    verification_token_hash: Mapped[Optional[str]] = mapped_column(String)
    verification_token_expires_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    password_reset_token: Mapped[Optional[str]] = mapped_column(String)
    password_reset_expires_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    avatar_url: Mapped[Optional[str]] = mapped_column(String)
    provider: Mapped[str] = mapped_column(String, nullable=False, default='local')
    google_id: Mapped[Optional[str]] = mapped_column(String)
    google_picture: Mapped[Optional[str]] = mapped_column(String)
    login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_login_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    is_logged_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now, onupdate=now)

    sessions: Mapped[list['Session']] = relationship('Session', back_populates='user', cascade='all, delete-orphan', passive_deletes=True)
    enrollments: Mapped[list['Enrollment']] = relationship('Enrollment', back_populates='user', cascade='all, delete-orphan', passive_deletes=True)
    courses: Mapped[list['Course']] = relationship('Course', back_populates='instructor')
    email_verification_sends: Mapped[list['EmailVerificationSend']] = relationship('EmailVerificationSend', back_populates='user', cascade='all, delete-orphan', passive_deletes=True)


class Session(Base):
    __tablename__ = 'sessions'
    __table_args__ = (
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='sessions_user_id_fkey'),
        PrimaryKeyConstraint('id', name='sessions_pkey'),
        Index('idx_sessions_user', 'user_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    refresh_token_hash: Mapped[str] = mapped_column(String, nullable=False)
    refresh_token_exp: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False)
    jti: Mapped[str] = mapped_column(String, nullable=False)
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    ip: Mapped[Optional[str]] = mapped_column(String)
    device: Mapped[Optional[str]] = mapped_column(String)
    revoked_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now)

    user: Mapped['User'] = relationship('User', back_populates='sessions')


class Category(Base):
    __tablename__ = 'categories'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='categories_pkey'),
        UniqueConstraint('slug', name='categories_slug_key'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now)

    course_categories: Mapped[list['CourseCategory']] = relationship('CourseCategory', back_populates='category', cascade='all, delete-orphan', passive_deletes=True)


class Course(Base):
    __tablename__ = 'courses'
    __table_args__ = (
        ForeignKeyConstraint(['instructor_id'], ['users.id'], ondelete='SET NULL', name='courses_instructor_id_fkey'),
        PrimaryKeyConstraint('id', name='courses_pkey'),
        UniqueConstraint('slug', name='courses_slug_key'),
        Index('idx_courses_published_position', 'is_published', 'position'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    short_description: Mapped[Optional[str]] = mapped_column(Text)
    full_description: Mapped[Optional[str]] = mapped_column(Text)
    instructor_id: Mapped[Optional[int]] = mapped_column(Integer)
    level: Mapped[Optional[str]] = mapped_column(String)
    language: Mapped[Optional[str]] = mapped_column(String)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String)
    promo_url: Mapped[Optional[str]] = mapped_column(String)
    preview_video_url: Mapped[Optional[str]] = mapped_column(String)
    brochure_url: Mapped[Optional[str]] = mapped_column(String)
    currency: Mapped[Optional[str]] = mapped_column(String)
    price: Mapped[Optional[float]] = mapped_column(Float)
    discount_price: Mapped[Optional[float]] = mapped_column(Float)
    show_price: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    price_recorded_egp: Mapped[Optional[float]] = mapped_column(Float)
    price_recorded_usd: Mapped[Optional[float]] = mapped_column(Float)
    price_online_egp: Mapped[Optional[float]] = mapped_column(Float)
    price_online_usd: Mapped[Optional[float]] = mapped_column(Float)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now, onupdate=now)

    instructor: Mapped[Optional['User']] = relationship('User', back_populates='courses')
    course_categories: Mapped[list['CourseCategory']] = relationship('CourseCategory', back_populates='course', cascade='all, delete-orphan', passive_deletes=True)
    learning_outcomes: Mapped[list['CourseLearningOutcome']] = relationship('CourseLearningOutcome', back_populates='course', cascade='all, delete-orphan', passive_deletes=True, order_by='CourseLearningOutcome.position')
    co_instructors: Mapped[list['CourseInstructor']] = relationship('CourseInstructor', back_populates='course', cascade='all, delete-orphan', passive_deletes=True)
    enrollments: Mapped[list['Enrollment']] = relationship('Enrollment', back_populates='course', cascade='all, delete-orphan', passive_deletes=True)

    @property
    def categories(self) -> list['Category']:
        return [cc.category for cc in self.course_categories if cc.category is not None]


class CourseCategory(Base):
    __tablename__ = 'course_categories'
    __table_args__ = (
        ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE', name='course_categories_course_id_fkey'),
        ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='CASCADE', name='course_categories_category_id_fkey'),
        PrimaryKeyConstraint('course_id', 'category_id', name='course_categories_pkey'),
    )

    course_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(Integer, primary_key=True)

    course: Mapped['Course'] = relationship('Course', back_populates='course_categories')
    category: Mapped['Category'] = relationship('Category', back_populates='course_categories')


class CourseInstructor(Base):
    __tablename__ = 'course_instructors'
    __table_args__ = (
        ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE', name='course_instructors_course_id_fkey'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='course_instructors_user_id_fkey'),
        PrimaryKeyConstraint('course_id', 'user_id', name='course_instructors_pkey'),
    )

    course_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)

    course: Mapped['Course'] = relationship('Course', back_populates='co_instructors')


class CourseLearningOutcome(Base):
    __tablename__ = 'course_learning_outcomes'
    __table_args__ = (
        ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE', name='course_learning_outcomes_course_id_fkey'),
        PrimaryKeyConstraint('id', name='course_learning_outcomes_pkey'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    course: Mapped['Course'] = relationship('Course', back_populates='learning_outcomes')


class Enrollment(Base):
    __tablename__ = 'enrollments'
    __table_args__ = (
        ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE', name='enrollments_course_id_fkey'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='enrollments_user_id_fkey'),
        PrimaryKeyConstraint('id', name='enrollments_pkey'),
        UniqueConstraint('user_id', 'course_id', name='enrollments_user_course_key'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default='ACTIVE')
    enroll_type: Mapped[str] = mapped_column(String, nullable=False, default='RECORDED')
    selected_start_date: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    currency: Mapped[Optional[str]] = mapped_column(String)
    price_cents: Mapped[Optional[int]] = mapped_column(Integer)
    progress_pct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now)

    user: Mapped['User'] = relationship('User', back_populates='enrollments')
    course: Mapped['Course'] = relationship('Course', back_populates='enrollments')


class Payment(Base):
    __tablename__ = 'payments'
    __table_args__ = (
        ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE', name='payments_course_id_fkey'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='payments_user_id_fkey'),
        PrimaryKeyConstraint('id', name='payments_pkey'),
        Index('idx_payments_provider_order', 'provider', 'provider_order_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    enroll_type: Mapped[str] = mapped_column(String, nullable=False)
    provider: Mapped[str] = mapped_column(String, nullable=False)
    provider_order_id: Mapped[Optional[str]] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, nullable=False, default='pending')
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False)
    selected_start_date: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now, onupdate=now)


class EmailVerificationSend(Base):
    __tablename__ = 'email_verification_sends'
    __table_args__ = (
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='email_verification_sends_user_id_fkey'),
        PrimaryKeyConstraint('id', name='email_verification_sends_pkey'),
        Index('idx_email_verification_sends_user_created', 'user_id', 'created_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, nullable=False, default=now)

    user: Mapped['User'] = relationship('User', back_populates='email_verification_sends')
